"""Per-action setting resolution: action override > flow default > fallback."""

from __future__ import annotations

from dataclasses import dataclass

from flowwright.core.types import FlowSettings, SendMessageAction

SMART_SENDING_FALLBACK = True
UTM_TRACKING_FALLBACK = False


@dataclass(frozen=True)
class ResolvedSettings:
    smart_sending: bool
    utm_tracking: bool


def resolve_setting(per_action: bool | None, flow_default: bool | None, fallback: bool) -> bool:
    if per_action is not None:
        return per_action
    if flow_default is not None:
        return flow_default
    return fallback


def resolve_message_settings(
    action: SendMessageAction, settings: FlowSettings | None
) -> ResolvedSettings:
    settings = settings or FlowSettings()
    return ResolvedSettings(
        smart_sending=resolve_setting(
            action.smart_sending, settings.smart_sending, SMART_SENDING_FALLBACK
        ),
        utm_tracking=resolve_setting(
            action.utm_tracking, settings.utm_tracking, UTM_TRACKING_FALLBACK
        ),
    )


def flow_defaults(settings: FlowSettings | None) -> ResolvedSettings:
    """Flow-wide values an action with no overrides would get."""
    settings = settings or FlowSettings()
    return ResolvedSettings(
        smart_sending=resolve_setting(None, settings.smart_sending, SMART_SENDING_FALLBACK),
        utm_tracking=resolve_setting(None, settings.utm_tracking, UTM_TRACKING_FALLBACK),
    )
