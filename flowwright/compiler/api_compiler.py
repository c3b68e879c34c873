"""REST compiler: Flow -> Flows API create payload."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from flowwright.compiler.conditions import build_condition_filter
from flowwright.compiler.types import CompiledAPIFlow
from flowwright.core.errors import CapabilityError, ResolutionError
from flowwright.core.settings import resolve_message_settings
from flowwright.core.traversal import traverse
from flowwright.core.types import (
    Action,
    ActionType,
    ConditionalSplitAction,
    DateTrigger,
    DelayUnit,
    Flow,
    ListTrigger,
    MetricTrigger,
    SendEmailAction,
    SendSmsAction,
    TimeDelayAction,
    Trigger,
)

if TYPE_CHECKING:
    from flowwright.remote.directory import TriggerDirectory

logger = logging.getLogger(__name__)

ALL_WEEKDAYS = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]

DEFAULT_FROM_EMAIL = "noreply@example.com"
DEFAULT_FROM_LABEL = "Store"

_SUPPORTED_TYPES = {
    ActionType.TIME_DELAY.value,
    ActionType.SEND_EMAIL.value,
    ActionType.SEND_SMS.value,
    ActionType.CONDITIONAL_SPLIT.value,
}


def _unsupported(action: Action) -> CapabilityError:
    if action.type == ActionType.AB_SPLIT.value:
        message = (
            f'Action "{action.id}" is an A/B split, which the Flows API cannot create. '
            "Use browser or hybrid mode."
        )
    else:
        message = f'Action "{action.id}" has unsupported type "{action.type}".'
    return CapabilityError(message, action_id=action.id, backend="api")


def check_api_capabilities(flow: Flow) -> None:
    """Raise :class:`CapabilityError` for the first action the REST backend cannot create."""
    for action in flow.actions:
        if action.type not in _SUPPORTED_TYPES:
            raise _unsupported(action)


class APICompiler:
    """
    Compiles a validated :class:`Flow` into a single create-flow request body.

    Parameters
    ----------
    directory:
        Metric/list lookups used when the trigger carries a name but no id.
        Only needed for metric and list triggers without a pre-resolved id.
    from_email, from_label:
        Sender fields stamped on every email message.
    """

    def __init__(
        self,
        directory: TriggerDirectory | None = None,
        *,
        from_email: str | None = None,
        from_label: str | None = None,
    ) -> None:
        self._directory = directory
        self._from_email = from_email or DEFAULT_FROM_EMAIL
        self._from_label = from_label or DEFAULT_FROM_LABEL

    async def compile(
        self, flow: Flow, template_ids: dict[str, str] | None = None
    ) -> CompiledAPIFlow:
        """
        Build the create-flow payload.

        Actions are emitted in traversal order. ``template_ids`` maps email
        action ids to pre-created template ids.

        Raises
        ------
        CapabilityError
            An action has no REST representation (A/B splits, unknown types).
        ResolutionError
            The trigger name could not be resolved to an account id.
        """
        template_ids = template_ids or {}
        warnings: list[str] = []
        ordered = traverse(flow)

        actions = [self._compile_action(a, flow, template_ids, warnings) for a in ordered]
        trigger = await self.resolve_trigger(flow.trigger)

        profile_filter = flow.profile_filter.to_dict() if flow.profile_filter else None
        payload = {
            "data": {
                "type": "flow",
                "attributes": {
                    "name": flow.name,
                    "definition": {
                        "triggers": [trigger],
                        "profile_filter": profile_filter or None,
                        "actions": actions,
                        "entry_action_id": flow.entry_action_id,
                    },
                },
            }
        }
        logger.info(
            "Compiled flow %r: %d actions, %d warnings", flow.name, len(actions), len(warnings)
        )
        return CompiledAPIFlow(
            payload=payload, action_order=[a.id for a in ordered], warnings=warnings
        )

    # ------------------------------------------------------------------
    # Trigger
    # ------------------------------------------------------------------

    async def resolve_trigger(self, trigger: Trigger | None) -> dict[str, Any]:
        if isinstance(trigger, MetricTrigger):
            metric_id = trigger.metric_id or await self._lookup(
                "metric", trigger.metric_name
            )
            compiled: dict[str, Any] = {"type": "metric", "id": metric_id}
            if trigger.trigger_filter is not None:
                compiled["trigger_filter"] = trigger.trigger_filter.to_dict()
            return compiled

        if isinstance(trigger, ListTrigger):
            list_id = trigger.list_id or await self._lookup("list", trigger.list_name)
            return {"type": "list", "id": list_id}

        if isinstance(trigger, DateTrigger):
            return {"type": "date-property", "id": trigger.property_name}

        kind = trigger.type if trigger is not None else None
        raise CapabilityError(f"Unsupported trigger type: {kind}", backend="api")

    async def _lookup(self, kind: str, name: str) -> str:
        if self._directory is None:
            raise ResolutionError(
                f'{kind.capitalize()} "{name}" has no id and no directory is available to resolve it.',
                name=name,
            )
        directory = self._directory.metrics if kind == "metric" else self._directory.lists
        found = await directory.find_by_name(name)
        if found:
            return found
        available = await directory.names()
        shown = ", ".join(available[:20])
        raise ResolutionError(
            f'{kind.capitalize()} "{name}" not found in account. Available {kind}s: {shown}',
            name=name,
            available=available,
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _compile_action(
        self,
        action: Action,
        flow: Flow,
        template_ids: dict[str, str],
        warnings: list[str],
    ) -> dict[str, Any]:
        if isinstance(action, TimeDelayAction):
            return self._time_delay(action)
        if isinstance(action, SendEmailAction):
            return self._send_email(action, flow, template_ids.get(action.id))
        if isinstance(action, SendSmsAction):
            return self._send_sms(action, flow)
        if isinstance(action, ConditionalSplitAction):
            return self._conditional_split(action, warnings)
        raise _unsupported(action)

    @staticmethod
    def _links(action: Action) -> dict[str, str | None]:
        return {name: target for name, target in action.links()}

    def _time_delay(self, action: TimeDelayAction) -> dict[str, Any]:
        unit = action.delay_unit
        return {
            "temporary_id": action.id,
            "type": ActionType.TIME_DELAY.value,
            "links": self._links(action),
            "data": {
                "unit": unit,
                "value": action.delay_value,
                "secondary_value": 0,
                "timezone": "profile",
                "delay_until_time": None,
                # day-based delays are rejected unless every weekday is allowed
                "delay_until_weekdays": (
                    list(ALL_WEEKDAYS) if unit == DelayUnit.DAYS.value else None
                ),
            },
        }

    def _send_email(
        self, action: SendEmailAction, flow: Flow, template_id: str | None
    ) -> dict[str, Any]:
        resolved = resolve_message_settings(action, flow.settings)
        message: dict[str, Any] = {
            "name": action.name,
            "subject_line": action.subject_line or f"{action.name} Subject",
            "preview_text": action.preview_text or "",
            "from_email": self._from_email,
            "from_label": self._from_label,
            "reply_to_email": self._from_email,
            "cc_email": None,
            "bcc_email": None,
            "smart_sending_enabled": resolved.smart_sending,
            "transactional": False,
            "add_tracking_params": resolved.utm_tracking,
            "custom_tracking_params": None,
            "additional_filters": None,
        }
        if template_id:
            message["template_id"] = template_id
        return {
            "temporary_id": action.id,
            "type": ActionType.SEND_EMAIL.value,
            "links": self._links(action),
            "data": {"message": message, "status": "draft"},
        }

    def _send_sms(self, action: SendSmsAction, flow: Flow) -> dict[str, Any]:
        resolved = resolve_message_settings(action, flow.settings)
        return {
            "temporary_id": action.id,
            "type": ActionType.SEND_SMS.value,
            "links": self._links(action),
            "data": {
                "message": {
                    "name": action.name,
                    "body": action.body or "",
                    "smart_sending_enabled": resolved.smart_sending,
                    "transactional": False,
                    "add_tracking_params": resolved.utm_tracking,
                    "respecting_sms_quiet_hours": True,
                    "custom_tracking_params": None,
                    "additional_filters": None,
                },
                "status": "draft",
            },
        }

    def _conditional_split(
        self, action: ConditionalSplitAction, warnings: list[str]
    ) -> dict[str, Any]:
        profile_filter, warning = build_condition_filter(action)
        if warning:
            warnings.append(warning)
        return {
            "temporary_id": action.id,
            "type": ActionType.CONDITIONAL_SPLIT.value,
            "links": self._links(action),
            "data": {"profile_filter": profile_filter},
        }
