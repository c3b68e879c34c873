"""Playwright implementation of :class:`UIDriver`."""

from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import Any, Sequence

from playwright.async_api import Locator, Page

from flowwright.browser import selectors as sel
from flowwright.browser.base import UIDriver
from flowwright.compiler.types import UIOperation, UIStep
from flowwright.core.errors import UIStepError

logger = logging.getLogger(__name__)

_FLOW_ID_RE = re.compile(r"/flow/([^/]+)")


class PlaywrightDriver(UIDriver):
    """
    Drives the visual flow builder through a live Playwright page.

    Elements are located through the candidate tuples in
    :mod:`flowwright.browser.selectors`, first visible match wins.
    """

    def __init__(
        self,
        page: Page,
        *,
        screenshot_dir: str = "./screenshots",
        find_timeout: int = 5000,
        settle_ms: int = 1000,
        drag_steps: int = 15,
    ) -> None:
        self._page = page
        self._screenshot_dir = Path(screenshot_dir)
        self._find_timeout = find_timeout
        self._settle_ms = settle_ms
        self._drag_steps = drag_steps

    @property
    def page(self) -> Page:
        return self._page

    @property
    def flow_id(self) -> str | None:
        """Id of the flow open in the builder, parsed from the page URL."""
        match = _FLOW_ID_RE.search(self._page.url or "")
        return match.group(1) if match else None

    # ------------------------------------------------------------------
    # UIDriver
    # ------------------------------------------------------------------

    async def perform(self, step: UIStep) -> None:
        handler = {
            UIOperation.CREATE_FLOW: self._create_flow,
            UIOperation.SELECT_TRIGGER: self._select_trigger,
            UIOperation.ADD_ACTION: self._add_action,
            UIOperation.CONFIGURE_DELAY: self._configure_delay,
            UIOperation.CONFIGURE_MESSAGE: self._configure_message,
            UIOperation.CONFIGURE_SPLIT: self._configure_split,
            UIOperation.CONFIGURE_AB_SPLIT: self._configure_ab_split,
            UIOperation.DISMISS_PANEL: self._dismiss_panel,
            UIOperation.SET_REENTRY: self._set_reentry,
        }.get(step.operation)
        if handler is None:
            raise UIStepError(f"Unsupported UI operation: {step.operation}", step_index=step.step_index)
        logger.debug("Performing %s %s", step.label, step.params)
        await handler(step.params)

    async def screenshot(self, name: str) -> str | None:
        self._screenshot_dir.mkdir(parents=True, exist_ok=True)
        path = self._screenshot_dir / f"{time.strftime('%Y%m%d-%H%M%S')}-{name}.png"
        await self._page.screenshot(path=str(path), full_page=True)
        logger.info("Screenshot saved: %s", path)
        return str(path)

    async def open_flow(self, flow_id: str) -> None:
        """Open an existing flow in the builder and wait for the canvas."""
        await self._page.goto(sel.flow_edit_url(flow_id), wait_until="domcontentloaded")
        await self.find(sel.CANVAS, timeout=20000)

    # ------------------------------------------------------------------
    # Element lookup
    # ------------------------------------------------------------------

    async def find(
        self, candidates: Sequence[str], timeout: int | None = None, last: bool = False
    ) -> Locator:
        """Try each candidate selector in order until one is visible."""
        errors = []
        for candidate in candidates:
            try:
                matches = self._page.locator(candidate)
                loc = matches.last if last else matches.first
                await loc.wait_for(state="visible", timeout=timeout or self._find_timeout)
                return loc
            except Exception as e:
                errors.append(f"{candidate}: {e}")
        raise UIStepError(f"No visible element for {list(candidates)}. Errors: {errors}")

    async def find_optional(self, candidates: Sequence[str]) -> Locator | None:
        for candidate in candidates:
            loc = self._page.locator(candidate).first
            if await loc.is_visible():
                return loc
        return None

    async def _click(self, candidates: Sequence[str], last: bool = False) -> None:
        loc = await self.find(candidates, last=last)
        await loc.click()
        await self._settle()

    async def _settle(self) -> None:
        if self._settle_ms:
            await self._page.wait_for_timeout(self._settle_ms)

    async def _save_panel(self) -> None:
        save = await self.find_optional(sel.SAVE_BUTTON)
        if save is None:
            return
        await save.click()
        await self._settle()
        confirm = await self.find_optional(sel.CONFIRM_AND_SAVE)
        if confirm is not None:
            await confirm.click()
            await self._settle()

    async def _fill_number(self, candidates: Sequence[str], value: Any) -> None:
        field = await self.find(candidates)
        await field.fill(str(value))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def _create_flow(self, params: dict[str, Any]) -> None:
        if "/flows" not in (self._page.url or ""):
            await self._page.goto(sel.FLOWS_URL, wait_until="domcontentloaded")
        await self._click(sel.CREATE_FLOW_BUTTON)
        await self._click(sel.BUILD_YOUR_OWN)

        name_input = await self.find(sel.FLOW_NAME_INPUT)
        await name_input.fill(params.get("name", ""))
        await self._click(sel.CREATE_FLOW_BUTTON, last=True)

        await self._page.wait_for_url("**/flow/**/edit", timeout=20000)
        await self.find(sel.CANVAS, timeout=20000)
        logger.info("Flow created in builder: %s", self._page.url)

    async def _select_trigger(self, params: dict[str, Any]) -> None:
        label = params.get("label", "")
        await self._click(sel.TRIGGER_NODE)

        card = await self.find_optional(sel.text(label))
        if card is None:
            tab = await self.find_optional(sel.YOUR_METRICS_TAB)
            if tab is not None:
                await tab.click()
                await self._settle()
            card = await self.find(sel.text(label))
        await card.click()
        await self._settle()

        list_name = params.get("list_name")
        if list_name:
            await self._click(sel.text(list_name))
        await self._save_panel()
        logger.info("Trigger selected: %s", label)

    async def _add_action(self, params: dict[str, Any]) -> None:
        """Drag the sidebar entry onto the edge just above the End node."""
        label = params.get("sidebar_label", "")
        source = await self.find(sel.text(label))
        target = await self.find(sel.END_NODE, last=True)
        source_box = await source.bounding_box()
        target_box = await target.bounding_box()
        if not source_box or not target_box:
            raise UIStepError(f'Could not locate drag handles for "{label}"')

        sx = source_box["x"] + source_box["width"] / 2
        sy = source_box["y"] + source_box["height"] / 2
        tx = target_box["x"] + target_box["width"] / 2
        ty = target_box["y"] - 30

        mouse = self._page.mouse
        await mouse.move(sx, sy)
        await mouse.down()
        # intermediate moves are required for the canvas to register a drag
        await mouse.move(tx, ty, steps=self._drag_steps)
        await mouse.up()
        await self._settle()

    async def _configure_delay(self, params: dict[str, Any]) -> None:
        await self._fill_number(sel.DELAY_VALUE_INPUT, params.get("value", 0))
        unit = params.get("unit")
        if unit:
            dropdown = await self.find_optional(sel.DELAY_UNIT_DROPDOWN)
            if dropdown is not None:
                await dropdown.click()
                await self._click(sel.option(unit))
        await self._save_panel()

    async def _configure_message(self, params: dict[str, Any]) -> None:
        name = params.get("name")
        if name:
            field = await self.find(sel.MESSAGE_NAME_INPUT)
            await field.fill(name)

        toggles = [(sel.SMART_SENDING_TOGGLE, params.get("smart_sending"))]
        if params.get("channel") == "email":
            toggles.append((sel.UTM_TRACKING_TOGGLE, params.get("utm_tracking")))
        for candidates, value in toggles:
            if value is None:
                continue
            toggle = await self.find_optional(candidates)
            if toggle is not None:
                await toggle.set_checked(bool(value))
        await self._save_panel()

    async def _configure_split(self, params: dict[str, Any]) -> None:
        await self.find(sel.CONFIG_PANEL)
        await self._save_panel()

    async def _configure_ab_split(self, params: dict[str, Any]) -> None:
        await self._fill_number(sel.SPLIT_PERCENTAGE_INPUT, params.get("split_percentage", 50))
        await self._save_panel()

    async def _dismiss_panel(self, params: dict[str, Any]) -> None:
        await self._page.keyboard.press("Escape")
        canvas = await self.find_optional(sel.CANVAS)
        if canvas is not None:
            box = await canvas.bounding_box()
            if box:
                await self._page.mouse.click(box["x"] + 50, box["y"] + 50)
        await self._settle()

    async def _set_reentry(self, params: dict[str, Any]) -> None:
        mode = params.get("mode", "")
        label = sel.REENTRY_OPTION_LABELS.get(mode)
        if label is None:
            raise UIStepError(f"Unknown re-entry mode: {mode!r}")

        await self._click(sel.TRIGGER_NODE)
        await self.find(sel.REENTRY_SECTION)
        await self._click(sel.radio(label))

        if mode == "time-based":
            await self._fill_number(sel.REENTRY_VALUE_INPUT, params.get("value"))
            unit = params.get("unit")
            if unit:
                dropdown = await self.find_optional(sel.DELAY_UNIT_DROPDOWN)
                if dropdown is not None:
                    await dropdown.click()
                    await self._click(sel.option(unit.capitalize()))
        await self._save_panel()
        logger.info("Re-entry set: %s", mode)
