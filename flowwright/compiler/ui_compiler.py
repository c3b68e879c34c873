"""Simulated-UI compiler: Flow -> ordered builder steps."""

from __future__ import annotations

import logging
from typing import Any

from flowwright.compiler.types import CompiledUIFlow, UIOperation, UIStep
from flowwright.core.settings import resolve_message_settings
from flowwright.core.traversal import traverse
from flowwright.core.types import (
    ABSplitAction,
    Action,
    ActionType,
    ConditionalSplitAction,
    DateTrigger,
    Flow,
    ListTrigger,
    MetricTrigger,
    SendMessageAction,
    TimeDelayAction,
    Trigger,
)

logger = logging.getLogger(__name__)

# Builder sidebar entry per action type
SIDEBAR_LABELS: dict[str, str] = {
    ActionType.TIME_DELAY.value: "Time delay",
    ActionType.SEND_EMAIL.value: "Email",
    ActionType.SEND_SMS.value: "Text message",
    ActionType.CONDITIONAL_SPLIT.value: "Conditional split",
    ActionType.AB_SPLIT.value: "A/B test",
}

# Metric name -> trigger label shown in the builder's trigger picker
TRIGGER_LABELS: dict[str, str] = {
    "Started Checkout": "Checkout started",
    "Checkout Started": "Checkout started",
    "Added to Cart": "Added to cart",
    "Placed Order": "Placed order",
    "Viewed Product": "Viewed product",
    "Added to List": "Added to list",
    "Added to Segment": "Added to segment",
    "Active on Site": "Active on Site",
}

LIST_TRIGGER_LABEL = "Added to list"
DATE_TRIGGER_LABEL = "Date property"


def trigger_ui_label(trigger: Trigger | None) -> str:
    if isinstance(trigger, MetricTrigger):
        return TRIGGER_LABELS.get(trigger.metric_name, trigger.metric_name)
    if isinstance(trigger, ListTrigger):
        return LIST_TRIGGER_LABEL
    if isinstance(trigger, DateTrigger):
        return DATE_TRIGGER_LABEL
    return trigger.display_name if trigger is not None else ""


class UICompiler:
    """
    Compiles a :class:`Flow` into the ordered steps a person would take in
    the visual flow builder.

    Every action type is representable here, including A/B splits. Split
    conditions cannot be expressed through the static selector table, so
    they come out as fidelity warnings for manual completion.
    """

    def compile(self, flow: Flow) -> CompiledUIFlow:
        steps: list[UIStep] = []
        warnings: list[str] = []

        def add(
            operation: UIOperation,
            action_id: str | None = None,
            critical: bool = False,
            **params: Any,
        ) -> None:
            steps.append(
                UIStep(
                    step_index=len(steps),
                    operation=operation,
                    action_id=action_id,
                    params=params,
                    critical=critical,
                )
            )

        add(UIOperation.CREATE_FLOW, critical=True, name=flow.name)

        trigger_params: dict[str, Any] = {"label": trigger_ui_label(flow.trigger)}
        if isinstance(flow.trigger, ListTrigger):
            trigger_params["list_name"] = flow.trigger.list_name
        add(UIOperation.SELECT_TRIGGER, critical=True, **trigger_params)

        ordered = traverse(flow)
        for action in ordered:
            add(
                UIOperation.ADD_ACTION,
                action.id,
                sidebar_label=SIDEBAR_LABELS.get(action.type, action.type),
            )
            operation, params = self._configure(action, flow, warnings)
            add(operation, action.id, **params)
            add(UIOperation.DISMISS_PANEL)

        reentry = flow.settings.reentry if flow.settings else None
        if reentry is not None:
            add(UIOperation.SET_REENTRY, mode=reentry.mode, value=reentry.value, unit=reentry.unit)

        logger.info("Compiled flow %r into %d UI steps", flow.name, len(steps))
        return CompiledUIFlow(
            flow_name=flow.name,
            steps=steps,
            action_order=[a.id for a in ordered],
            warnings=warnings,
        )

    @staticmethod
    def _configure(
        action: Action, flow: Flow, warnings: list[str]
    ) -> tuple[UIOperation, dict[str, Any]]:
        if isinstance(action, TimeDelayAction):
            return UIOperation.CONFIGURE_DELAY, {
                "value": action.delay_value,
                "unit": action.delay_unit,
            }

        if isinstance(action, SendMessageAction):
            resolved = resolve_message_settings(action, flow.settings)
            return UIOperation.CONFIGURE_MESSAGE, {
                "channel": action.channel,
                "name": action.name,
                "smart_sending": resolved.smart_sending,
                "utm_tracking": resolved.utm_tracking,
            }

        if isinstance(action, ConditionalSplitAction):
            warnings.append(
                f'Conditional split "{action.label}" ({action.id}) was added without its '
                f'condition. Set "{action.condition_type}" manually in the flow builder.'
            )
            return UIOperation.CONFIGURE_SPLIT, {
                "label": action.label,
                "condition_type": action.condition_type,
            }

        if isinstance(action, ABSplitAction):
            percentage = action.split_percentage if action.split_percentage is not None else 50
            return UIOperation.CONFIGURE_AB_SPLIT, {
                "variant_a_label": action.variant_a_label or "Variant A",
                "variant_b_label": action.variant_b_label or "Variant B",
                "split_percentage": percentage,
            }

        warnings.append(f'Action "{action.id}" has unknown type "{action.type}"; left unconfigured.')
        return UIOperation.DISMISS_PANEL, {}
