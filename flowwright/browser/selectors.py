"""Static selector table for the visual flow builder.

Every entry is an ordered tuple of candidates; the driver tries them in turn
and uses the first one that becomes visible.
"""

from __future__ import annotations

FLOWS_URL = "https://www.klaviyo.com/flows"
FLOW_EDIT_URL = "https://www.klaviyo.com/flow/{flow_id}/edit"

CREATE_FLOW_BUTTON = ('button:has-text("Create flow")',)
BUILD_YOUR_OWN = ('[data-testid="create-flow-from-scratch-button"]', 'button:has-text("Build your own")')
FLOW_NAME_INPUT = ('input[placeholder*="Welcome series"]', 'input[placeholder*="e.g."]')

CANVAS = ('[data-testid="rf__wrapper"]',)
TRIGGER_NODE = ('[data-testid="trigger-node-wrapper"]',)
END_NODE = (':text("End")',)

CONFIG_PANEL = (
    '[data-testid="config-panel-drawer-DrawerPanelBody-content"]',
    '[data-testid="config-panel-drawer"]',
)
YOUR_METRICS_TAB = ('[role="tab"]:has-text("Your metrics")',)

SAVE_BUTTON = ('button:has-text("Save")', 'button:has-text("Done")')
CONFIRM_AND_SAVE = ('button:has-text("Confirm and save")',)

DELAY_VALUE_INPUT = ('input[type="number"]',)
DELAY_UNIT_DROPDOWN = (
    'button:has-text("minutes")',
    'button:has-text("hours")',
    'button:has-text("days")',
    'button:has-text("weeks")',
    "select",
)
MESSAGE_NAME_INPUT = ('input[placeholder*="name" i]', 'input[aria-label*="name" i]')
SMART_SENDING_TOGGLE = ('label:has-text("Smart Sending")', '[role="switch"][aria-label*="Smart Sending" i]')
UTM_TRACKING_TOGGLE = ('label:has-text("UTM")', '[role="switch"][aria-label*="UTM" i]')
SPLIT_PERCENTAGE_INPUT = ('input[type="number"]',)

REENTRY_SECTION = (':text("Re-entry criteria")', ':text("Flow filters")')
REENTRY_VALUE_INPUT = ('input[type="number"]',)
REENTRY_OPTION_LABELS = {
    "once": "Once",
    "multiple": "Multiple",
    "time-based": "Time-based",
}


def text(label: str) -> tuple[str, ...]:
    return (f'text="{label}"', f':text("{label}")')


def option(label: str) -> tuple[str, ...]:
    return (f'[role="option"]:has-text("{label}")', f'option:has-text("{label}")')


def radio(label: str) -> tuple[str, ...]:
    return (
        f'label:has-text("{label}")',
        f'[role="radio"]:has-text("{label}")',
        f'[role="option"]:has-text("{label}")',
    )


def flow_edit_url(flow_id: str) -> str:
    return FLOW_EDIT_URL.format(flow_id=flow_id)
