"""Flow graph model: trigger, actions and the links between them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Any


class TriggerType(str, Enum):
    METRIC = "metric"
    LIST = "list"
    DATE_PROPERTY = "date-property"


class ActionType(str, Enum):
    TIME_DELAY = "time-delay"
    SEND_EMAIL = "send-email"
    SEND_SMS = "send-sms"
    CONDITIONAL_SPLIT = "conditional-split"
    AB_SPLIT = "ab-split"


class DelayUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"


class ReentryMode(str, Enum):
    ONCE = "once"
    MULTIPLE = "multiple"
    TIME_BASED = "time-based"


class ConditionKind(str, Enum):
    HAS_OPENED_EMAIL = "has-opened-email"
    HAS_CLICKED_EMAIL = "has-clicked-email"
    HAS_RECEIVED_EMAIL = "has-received-email"
    HAS_BEEN_IN_FLOW = "has-been-in-flow"
    PROFILE_PROPERTY = "profile-property"
    PROFILE_MARKETING_CONSENT = "profile-marketing-consent"
    METRIC_PROPERTY = "metric-property"
    CUSTOM = "custom"


REENTRY_UNITS = ("hours", "days", "weeks")

# Link attribute names per action type, in traversal order
LINK_FIELDS: dict[str, tuple[str, ...]] = {
    ActionType.TIME_DELAY.value: ("next",),
    ActionType.SEND_EMAIL.value: ("next",),
    ActionType.SEND_SMS.value: ("next",),
    ActionType.CONDITIONAL_SPLIT.value: ("next_if_true", "next_if_false"),
    ActionType.AB_SPLIT.value: ("next_variant_a", "next_variant_b"),
}


def _compact(d: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None."""
    return {k: v for k, v in d.items() if v is not None}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------


@dataclass
class Condition:
    type: str
    params: dict[str, Any] = field(default_factory=dict)
    # the original value when the source entry was not an object
    raw: Any = field(default=None, repr=False, compare=False)

    @classmethod
    def from_dict(cls, d: Any) -> Condition:
        if not isinstance(d, dict):
            return cls(type="", raw=d)
        params = {k: v for k, v in d.items() if k != "type"}
        return cls(type=str(d.get("type", "")), params=params)

    def to_dict(self) -> Any:
        if self.raw is not None:
            return self.raw
        return {"type": self.type, **self.params}


@dataclass
class ConditionGroup:
    conditions: list[Condition] = field(default_factory=list)
    raw: Any = field(default=None, repr=False, compare=False)

    @classmethod
    def from_dict(cls, d: Any) -> ConditionGroup:
        if not isinstance(d, dict):
            return cls(raw=d)
        conditions = d.get("conditions")
        if not isinstance(conditions, list):
            conditions = []
        return cls(conditions=[Condition.from_dict(c) for c in conditions])

    def to_dict(self) -> Any:
        if self.raw is not None:
            return self.raw
        return {"conditions": [c.to_dict() for c in self.conditions]}


@dataclass
class ConditionFilter:
    """
    Ordered condition groups.

    ``condition_groups`` is None when the source document had no array under
    that key; the validator reports it.
    """

    condition_groups: list[ConditionGroup] | None

    @classmethod
    def from_dict(cls, d: Any) -> ConditionFilter:
        raw = d.get("condition_groups") if isinstance(d, dict) else None
        if not isinstance(raw, list):
            return cls(condition_groups=None)
        return cls(condition_groups=[ConditionGroup.from_dict(g) for g in raw])

    def to_dict(self) -> dict[str, Any]:
        if self.condition_groups is None:
            return {}
        return {"condition_groups": [g.to_dict() for g in self.condition_groups]}


# ---------------------------------------------------------------------------
# Trigger
# ---------------------------------------------------------------------------


@dataclass
class Trigger:
    """Base trigger. Instantiated directly only for unrecognized types."""

    type: str

    @property
    def display_name(self) -> str:
        return "Unknown"

    @property
    def external_id(self) -> str | None:
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type}

    @staticmethod
    def from_dict(d: dict[str, Any]) -> Trigger:
        kind = str(d.get("type", ""))
        if kind == TriggerType.METRIC.value:
            tf = d.get("trigger_filter")
            return MetricTrigger(
                metric_name=d.get("metric_name") or "",
                metric_id=d.get("metric_id"),
                trigger_filter=ConditionFilter.from_dict(tf) if tf is not None else None,
            )
        if kind == TriggerType.LIST.value:
            return ListTrigger(list_name=d.get("list_name") or "", list_id=d.get("list_id"))
        if kind == TriggerType.DATE_PROPERTY.value:
            return DateTrigger(
                property_name=d.get("property_name") or "",
                offset_days=d.get("offset_days"),
            )
        return Trigger(type=kind)


@dataclass
class MetricTrigger(Trigger):
    type: str = field(default=TriggerType.METRIC.value, init=False)
    metric_name: str = ""
    metric_id: str | None = None
    trigger_filter: ConditionFilter | None = None

    @property
    def display_name(self) -> str:
        return self.metric_name or self.metric_id or ""

    @property
    def external_id(self) -> str | None:
        return self.metric_id

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "type": self.type,
                "metric_name": self.metric_name,
                "metric_id": self.metric_id,
                "trigger_filter": (
                    self.trigger_filter.to_dict() if self.trigger_filter is not None else None
                ),
            }
        )


@dataclass
class ListTrigger(Trigger):
    type: str = field(default=TriggerType.LIST.value, init=False)
    list_name: str = ""
    list_id: str | None = None

    @property
    def display_name(self) -> str:
        return self.list_name or self.list_id or ""

    @property
    def external_id(self) -> str | None:
        return self.list_id

    def to_dict(self) -> dict[str, Any]:
        return _compact({"type": self.type, "list_name": self.list_name, "list_id": self.list_id})


@dataclass
class DateTrigger(Trigger):
    type: str = field(default=TriggerType.DATE_PROPERTY.value, init=False)
    property_name: str = ""
    offset_days: int | None = None

    @property
    def display_name(self) -> str:
        return self.property_name

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {"type": self.type, "property_name": self.property_name, "offset_days": self.offset_days}
        )


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass
class Action:
    """
    One node of the flow graph.

    Links are stored by id, never by reference: branches can converge on the
    same downstream action.
    """

    id: str
    type: str
    # the original value when the source entry was not an object
    raw: Any = field(default=None, repr=False, compare=False)

    def links(self) -> list[tuple[str, str | None]]:
        """(link name, target id) pairs in traversal order."""
        return [(name, getattr(self, name, None)) for name in LINK_FIELDS.get(self.type, ())]

    def next_ids(self) -> list[str]:
        return [target for _, target in self.links() if target]

    @property
    def label(self) -> str:
        return self.id

    def to_dict(self) -> Any:
        if self.raw is not None:
            return self.raw
        return {"id": self.id, "type": self.type}

    @staticmethod
    def from_dict(d: Any) -> Action:
        if not isinstance(d, dict):
            return Action(id="", type="", raw=d)
        kind = str(d.get("type", ""))
        action_id = str(d.get("id") or "")
        cls = _ACTION_CLASSES.get(kind)
        if cls is None:
            return Action(id=action_id, type=kind)
        return cls._from_dict(action_id, d)


@dataclass
class TimeDelayAction(Action):
    type: str = field(default=ActionType.TIME_DELAY.value, init=False)
    delay_value: int = 0
    delay_unit: str = DelayUnit.DAYS.value
    next: str | None = None

    @classmethod
    def _from_dict(cls, action_id: str, d: dict[str, Any]) -> TimeDelayAction:
        return cls(
            id=action_id,
            delay_value=d.get("delay_value", 0),
            delay_unit=d.get("delay_unit", DelayUnit.DAYS.value),
            next=d.get("next"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "type": self.type,
                "delay_value": self.delay_value,
                "delay_unit": self.delay_unit,
                "next": self.next,
            }
        )


@dataclass
class SendMessageAction(Action):
    """Shared shape of email and SMS sends."""

    name: str = ""
    smart_sending: bool | None = None
    utm_tracking: bool | None = None
    next: str | None = None

    @property
    def channel(self) -> str:
        return "sms" if self.type == ActionType.SEND_SMS.value else "email"

    @property
    def label(self) -> str:
        return self.name or self.id

    def _base_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "smart_sending": self.smart_sending,
            "utm_tracking": self.utm_tracking,
        }


@dataclass
class SendEmailAction(SendMessageAction):
    type: str = field(default=ActionType.SEND_EMAIL.value, init=False)
    subject_line: str | None = None
    preview_text: str | None = None
    content: dict[str, Any] | None = None

    @classmethod
    def _from_dict(cls, action_id: str, d: dict[str, Any]) -> SendEmailAction:
        return cls(
            id=action_id,
            name=d.get("name") or "",
            subject_line=d.get("subject_line"),
            preview_text=d.get("preview_text"),
            smart_sending=d.get("smart_sending"),
            utm_tracking=d.get("utm_tracking"),
            content=d.get("content"),
            next=d.get("next"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                **self._base_dict(),
                "subject_line": self.subject_line,
                "preview_text": self.preview_text,
                "content": self.content,
                "next": self.next,
            }
        )


@dataclass
class SendSmsAction(SendMessageAction):
    type: str = field(default=ActionType.SEND_SMS.value, init=False)
    body: str | None = None

    @classmethod
    def _from_dict(cls, action_id: str, d: dict[str, Any]) -> SendSmsAction:
        return cls(
            id=action_id,
            name=d.get("name") or "",
            body=d.get("body"),
            smart_sending=d.get("smart_sending"),
            utm_tracking=d.get("utm_tracking"),
            next=d.get("next"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact({**self._base_dict(), "body": self.body, "next": self.next})


@dataclass
class ConditionalSplitAction(Action):
    type: str = field(default=ActionType.CONDITIONAL_SPLIT.value, init=False)
    condition_type: str = ""
    condition_label: str = ""
    condition_config: dict[str, Any] | None = None
    next_if_true: str | None = None
    next_if_false: str | None = None

    @property
    def label(self) -> str:
        return self.condition_label or self.id

    @classmethod
    def _from_dict(cls, action_id: str, d: dict[str, Any]) -> ConditionalSplitAction:
        return cls(
            id=action_id,
            condition_type=d.get("condition_type") or "",
            condition_label=d.get("condition_label") or "",
            condition_config=d.get("condition_config"),
            next_if_true=d.get("next_if_true"),
            next_if_false=d.get("next_if_false"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "type": self.type,
                "condition_type": self.condition_type,
                "condition_label": self.condition_label,
                "condition_config": self.condition_config,
                "next_if_true": self.next_if_true,
                "next_if_false": self.next_if_false,
            }
        )


@dataclass
class ABSplitAction(Action):
    type: str = field(default=ActionType.AB_SPLIT.value, init=False)
    variant_a_label: str | None = None
    variant_b_label: str | None = None
    split_percentage: int | None = None
    next_variant_a: str | None = None
    next_variant_b: str | None = None

    @classmethod
    def _from_dict(cls, action_id: str, d: dict[str, Any]) -> ABSplitAction:
        return cls(
            id=action_id,
            variant_a_label=d.get("variant_a_label"),
            variant_b_label=d.get("variant_b_label"),
            split_percentage=d.get("split_percentage"),
            next_variant_a=d.get("next_variant_a"),
            next_variant_b=d.get("next_variant_b"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "type": self.type,
                "variant_a_label": self.variant_a_label,
                "variant_b_label": self.variant_b_label,
                "split_percentage": self.split_percentage,
                "next_variant_a": self.next_variant_a,
                "next_variant_b": self.next_variant_b,
            }
        )


_ACTION_CLASSES: dict[str, Any] = {
    ActionType.TIME_DELAY.value: TimeDelayAction,
    ActionType.SEND_EMAIL.value: SendEmailAction,
    ActionType.SEND_SMS.value: SendSmsAction,
    ActionType.CONDITIONAL_SPLIT.value: ConditionalSplitAction,
    ActionType.AB_SPLIT.value: ABSplitAction,
}


# ---------------------------------------------------------------------------
# Settings + Flow
# ---------------------------------------------------------------------------


@dataclass
class ReentryPolicy:
    mode: str
    value: int | None = None
    unit: str | None = None
    # the original value when ``settings.reentry`` was not an object
    raw: Any = field(default=None, repr=False, compare=False)

    @classmethod
    def from_dict(cls, d: Any) -> ReentryPolicy:
        if not isinstance(d, dict):
            return cls(mode="", raw=d)
        return cls(mode=str(d.get("mode", "")), value=d.get("value"), unit=d.get("unit"))

    def describe(self) -> str:
        if self.mode == ReentryMode.TIME_BASED.value:
            return f"{self.mode} ({self.value} {self.unit})"
        return self.mode

    def to_dict(self) -> Any:
        if self.raw is not None:
            return self.raw
        return _compact({"mode": self.mode, "value": self.value, "unit": self.unit})


@dataclass
class FlowSettings:
    smart_sending: bool | None = None
    utm_tracking: bool | None = None
    reentry: ReentryPolicy | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> FlowSettings:
        reentry = d.get("reentry")
        return cls(
            smart_sending=d.get("smart_sending"),
            utm_tracking=d.get("utm_tracking"),
            reentry=ReentryPolicy.from_dict(reentry) if reentry is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "smart_sending": self.smart_sending,
                "utm_tracking": self.utm_tracking,
                "reentry": self.reentry.to_dict() if self.reentry else None,
            }
        )


@dataclass
class Flow:
    """
    A trigger plus a directed graph of actions addressed by id.

    The model holds whatever structure it is given; structural checks belong
    to :func:`flowwright.core.validator.validate`.
    """

    name: str
    trigger: Trigger | None
    actions: list[Action]
    entry_action_id: str
    profile_filter: ConditionFilter | None = None
    settings: FlowSettings | None = None
    tags: list[str] = field(default_factory=list)

    @cached_property
    def action_map(self) -> dict[str, Action]:
        """id -> action, built on first use. The first definition wins when ids collide."""
        index: dict[str, Action] = {}
        for action in self.actions:
            index.setdefault(action.id, action)
        return index

    def get(self, action_id: str | None) -> Action | None:
        if not action_id:
            return None
        return self.action_map.get(action_id)

    def successors(self, action: Action) -> list[Action]:
        index = self.action_map
        return [index[t] for t in action.next_ids() if t in index]

    def actions_of_type(self, *types: str) -> list[Action]:
        return [a for a in self.actions if a.type in types]

    def has_action_type(self, action_type: str) -> bool:
        return any(a.type == action_type for a in self.actions)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Flow:
        trigger = d.get("trigger")
        profile_filter = d.get("profile_filter")
        settings = d.get("settings")
        return cls(
            name=d.get("name") or "",
            trigger=Trigger.from_dict(trigger) if isinstance(trigger, dict) else None,
            actions=[Action.from_dict(a) for a in _as_list(d.get("actions"))],
            entry_action_id=d.get("entry_action_id") or "",
            profile_filter=(
                ConditionFilter.from_dict(profile_filter) if profile_filter is not None else None
            ),
            settings=FlowSettings.from_dict(settings) if isinstance(settings, dict) else None,
            tags=list(d.get("tags") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "name": self.name,
            "trigger": self.trigger.to_dict() if self.trigger else None,
            "actions": [a.to_dict() for a in self.actions],
            "entry_action_id": self.entry_action_id,
        }
        if self.profile_filter is not None:
            d["profile_filter"] = self.profile_filter.to_dict()
        if self.settings is not None:
            d["settings"] = self.settings.to_dict()
        if self.tags:
            d["tags"] = list(self.tags)
        return d
