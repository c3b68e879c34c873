"""Shared flow definitions for the test suite."""

from __future__ import annotations

import copy
from typing import Any

ABANDONED_CART: dict[str, Any] = {
    "name": "Abandoned Cart",
    "trigger": {"type": "metric", "metric_name": "Started Checkout"},
    "entry_action_id": "wait",
    "settings": {"smart_sending": True, "utm_tracking": False},
    "actions": [
        {"id": "wait", "type": "time-delay", "delay_value": 4, "delay_unit": "hours", "next": "email_1"},
        {
            "id": "email_1",
            "type": "send-email",
            "name": "Cart Reminder",
            "subject_line": "You left something behind",
            "next": "split",
        },
        {
            "id": "split",
            "type": "conditional-split",
            "condition_type": "has-opened-email",
            "condition_label": "Opened reminder?",
            "next_if_true": "sms",
            "next_if_false": "email_2",
        },
        {"id": "sms", "type": "send-sms", "name": "Nudge", "body": "Still thinking it over?"},
        {"id": "email_2", "type": "send-email", "name": "Last Chance", "utm_tracking": True},
    ],
}


def flow_dict(**overrides: Any) -> dict[str, Any]:
    d = copy.deepcopy(ABANDONED_CART)
    d.update(overrides)
    return d


def linear_flow_dict(*actions: dict[str, Any], **overrides: Any) -> dict[str, Any]:
    d: dict[str, Any] = {
        "name": "Linear",
        "trigger": {"type": "list", "list_name": "Newsletter"},
        "entry_action_id": actions[0]["id"] if actions else "",
        "actions": list(actions),
    }
    d.update(overrides)
    return d
