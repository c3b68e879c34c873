"""Flow validation: structural errors (fatal) and warnings (build proceeds)."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from flowwright.core.traversal import reachable_ids
from flowwright.core.types import (
    LINK_FIELDS,
    REENTRY_UNITS,
    ConditionFilter,
    DateTrigger,
    Flow,
    ListTrigger,
    MetricTrigger,
    ReentryMode,
    ReentryPolicy,
)


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def validate_definition(definition: dict[str, Any]) -> ValidationResult:
    """Parse a flow document and validate it."""
    return validate(Flow.from_dict(definition))


def validate(flow: Flow) -> ValidationResult:
    """
    Check a flow without mutating it.

    Every check runs; a check is skipped only when an earlier failure makes
    it meaningless (e.g. link checks with no actions).
    """
    errors: list[str] = []
    warnings: list[str] = []

    # 1. required top-level fields
    if not flow.name or not flow.name.strip():
        errors.append("Flow name is required.")
    if flow.trigger is None:
        errors.append("Flow trigger is required.")
    if not flow.actions:
        errors.append("Flow must have at least one action.")
    if not flow.entry_action_id:
        errors.append("entry_action_id is required; it must reference the first action.")

    # 2. trigger-specific fields
    if flow.trigger is not None:
        _check_trigger(flow, errors)

    if flow.actions:
        action_ids = {a.id for a in flow.actions if a.id}

        # 3. entry resolves
        if flow.entry_action_id and flow.entry_action_id not in action_ids:
            errors.append(
                f'entry_action_id "{flow.entry_action_id}" does not match any action ID.'
            )

        # 4. unique ids
        for position, action in enumerate(flow.actions):
            if action.raw is not None:
                errors.append(f"Action #{position + 1} is not an object.")
            elif not action.id:
                errors.append(f"Action #{position + 1} ({action.type or 'untyped'}) has no id.")
        counts = Counter(a.id for a in flow.actions if a.id)
        for action_id, count in counts.items():
            if count > 1:
                errors.append(f'Duplicate action ID: "{action_id}" appears {count} times.')

        # 5. links
        for action in flow.actions:
            if action.raw is not None:
                continue
            if action.type not in LINK_FIELDS:
                errors.append(f'Action "{action.id}" has unknown type "{action.type}".')
                continue
            for link_name, target in action.links():
                if target and target not in action_ids:
                    errors.append(
                        f'Action "{action.id}" has {link_name}="{target}" which doesn\'t exist.'
                    )

    # 6. re-entry
    if flow.settings is not None and flow.settings.reentry is not None:
        _check_reentry(flow.settings.reentry, errors)

    # 7. filter structure
    if flow.profile_filter is not None:
        _check_filter("profile_filter", flow.profile_filter, errors, warnings)
    if isinstance(flow.trigger, MetricTrigger) and flow.trigger.trigger_filter is not None:
        _check_filter("trigger_filter", flow.trigger.trigger_filter, errors, warnings)

    # 8. unreachable actions
    if flow.actions and flow.entry_action_id in {a.id for a in flow.actions}:
        reachable = reachable_ids(flow)
        for action in flow.actions:
            if action.id and action.id not in reachable:
                warnings.append(
                    f'Action "{action.id}" is not reachable from entry action '
                    f'"{flow.entry_action_id}".'
                )

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def _check_trigger(flow: Flow, errors: list[str]) -> None:
    trigger = flow.trigger
    if isinstance(trigger, MetricTrigger):
        if not trigger.metric_name and not trigger.metric_id:
            errors.append("Metric trigger requires either metric_name or metric_id.")
    elif isinstance(trigger, ListTrigger):
        if not trigger.list_name and not trigger.list_id:
            errors.append("List trigger requires either list_name or list_id.")
    elif isinstance(trigger, DateTrigger):
        if not trigger.property_name:
            errors.append("Date trigger requires property_name.")
    else:
        errors.append(f'Unknown trigger type: "{trigger.type}".')


def _check_reentry(reentry: ReentryPolicy, errors: list[str]) -> None:
    if reentry.raw is not None:
        shown = json.dumps(reentry.raw, default=str)
        errors.append(f'settings.reentry must be an object with a "mode". Got: {shown}.')
        return
    modes = [m.value for m in ReentryMode]
    if reentry.mode not in modes:
        errors.append(
            f"settings.reentry.mode must be one of: {', '.join(modes)}. Got: \"{reentry.mode}\"."
        )
        return
    # value/unit on once/multiple are ignored
    if reentry.mode != ReentryMode.TIME_BASED.value:
        return
    value = reentry.value
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        errors.append('settings.reentry with mode "time-based" requires a positive "value".')
    if reentry.unit not in REENTRY_UNITS:
        errors.append(
            f"settings.reentry.unit must be one of: {', '.join(REENTRY_UNITS)}. "
            f'Got: "{reentry.unit}".'
        )


def _check_filter(
    name: str, condition_filter: ConditionFilter, errors: list[str], warnings: list[str]
) -> None:
    if condition_filter.condition_groups is None:
        errors.append(f'{name} must have a "condition_groups" array.')
    elif not condition_filter.condition_groups:
        warnings.append(f"{name} has empty condition_groups; it will have no effect.")
        return
    for position, group in enumerate(condition_filter.condition_groups or [], 1):
        if group.raw is not None:
            errors.append(f"{name} condition group #{position} is not an object.")
        elif any(c.raw is not None for c in group.conditions):
            errors.append(f"{name} condition group #{position} has a condition that is not an object.")
