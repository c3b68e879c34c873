"""Conditional split descriptors -> remote profile filter schema."""

from __future__ import annotations

import copy
import logging
from typing import Any

from flowwright.core.types import ConditionalSplitAction, ConditionKind

logger = logging.getLogger(__name__)

# Conditions with no faithful equivalent in the Flows API; they compile to a
# placeholder that keeps the YES/NO branching intact.
_METRIC_LABELS = {
    ConditionKind.HAS_OPENED_EMAIL.value: "Opened Email",
    ConditionKind.HAS_CLICKED_EMAIL.value: "Clicked Email",
    ConditionKind.HAS_RECEIVED_EMAIL.value: "Received Email",
}


def consent_filter(channel: str = "email") -> dict[str, Any]:
    return {
        "condition_groups": [
            {
                "conditions": [
                    {
                        "type": "profile-marketing-consent",
                        "consent": {
                            "channel": channel,
                            "can_receive_marketing": True,
                            "consent_status": {"subscription": "subscribed", "filters": None},
                        },
                    }
                ]
            }
        ]
    }


def build_condition_filter(action: ConditionalSplitAction) -> tuple[dict[str, Any], str | None]:
    """
    Return ``(profile_filter, fidelity_warning)``.

    The warning is None when the compiled filter matches the author's intent.
    """
    kind = action.condition_type
    config = action.condition_config or {}

    if kind in _METRIC_LABELS:
        warning = (
            f'Conditional split "{action.label}" ({action.id}) uses a placeholder condition. '
            f'After creation, change it in the UI to "What someone has done" -> '
            f'"{_METRIC_LABELS[kind]}".'
        )
        logger.warning(warning)
        return consent_filter(), warning

    if kind == ConditionKind.PROFILE_MARKETING_CONSENT.value:
        return consent_filter(str(config.get("channel") or "email")), None

    if kind == ConditionKind.CUSTOM.value:
        custom = config.get("profile_filter")
        if isinstance(custom, dict):
            return copy.deepcopy(custom), None
        return {"condition_groups": []}, None

    warning = (
        f'Conditional split "{action.label}" ({action.id}) has condition type "{kind}" '
        f"which cannot be expressed via the API; a placeholder condition was used."
    )
    logger.warning("Unknown condition type: %s. Using consent placeholder.", kind)
    return consent_filter(), warning
