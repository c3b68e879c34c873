"""Unit tests for PlaywrightDriver (AsyncMock page, no live browser)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from flowwright.browser import selectors as sel
from flowwright.browser.driver import PlaywrightDriver
from flowwright.compiler.types import UIOperation, UIStep
from flowwright.core.errors import UIStepError


def make_locator(visible=True) -> AsyncMock:
    loc = AsyncMock()
    loc.first = loc
    loc.last = loc
    loc.wait_for = AsyncMock()
    loc.is_visible = AsyncMock(return_value=visible)
    loc.click = AsyncMock()
    loc.fill = AsyncMock()
    loc.set_checked = AsyncMock()
    loc.bounding_box = AsyncMock(return_value={"x": 100, "y": 200, "width": 40, "height": 20})
    return loc


def make_page(url="https://www.klaviyo.com/flows") -> AsyncMock:
    page = AsyncMock()
    page.url = url
    loc = make_locator()
    page.locator = MagicMock(return_value=loc)
    page.mouse = AsyncMock()
    page.keyboard = AsyncMock()
    return page


def step(operation, **params) -> UIStep:
    return UIStep(step_index=3, operation=operation, action_id="a1", params=params)


class TestFind:
    async def test_first_visible_candidate_wins(self):
        page = make_page()
        driver = PlaywrightDriver(page, settle_ms=0)
        await driver.find(("#a", "#b"))
        page.locator.assert_called_once_with("#a")

    async def test_falls_through_candidates(self):
        page = make_page()
        hidden = make_locator()
        hidden.wait_for.side_effect = TimeoutError("not visible")
        shown = make_locator()
        page.locator = MagicMock(side_effect=[hidden, shown])
        driver = PlaywrightDriver(page, settle_ms=0)
        assert await driver.find(("#a", "#b")) is shown

    async def test_nothing_visible_raises(self):
        page = make_page()
        page.locator.return_value.wait_for.side_effect = TimeoutError("not visible")
        driver = PlaywrightDriver(page, settle_ms=0)
        with pytest.raises(UIStepError, match="No visible element"):
            await driver.find(("#a", "#b"))

    async def test_find_optional_returns_none(self):
        page = make_page()
        page.locator.return_value.is_visible.return_value = False
        driver = PlaywrightDriver(page, settle_ms=0)
        assert await driver.find_optional(("#a",)) is None


class TestOperations:
    def setup_method(self):
        self.page = make_page()
        self.loc = self.page.locator.return_value
        self.driver = PlaywrightDriver(self.page, settle_ms=0)

    def selectors_used(self):
        return [c.args[0] for c in self.page.locator.call_args_list]

    async def test_create_flow(self):
        self.page.url = "https://www.klaviyo.com/dashboard"
        await self.driver.perform(step(UIOperation.CREATE_FLOW, name="Welcome"))
        self.page.goto.assert_awaited_once_with(sel.FLOWS_URL, wait_until="domcontentloaded")
        self.loc.fill.assert_awaited_once_with("Welcome")
        self.page.wait_for_url.assert_awaited_once()
        assert sel.CANVAS[0] in self.selectors_used()

    async def test_select_list_trigger(self):
        await self.driver.perform(step(UIOperation.SELECT_TRIGGER, label="Added to list", list_name="VIP"))
        used = self.selectors_used()
        assert sel.TRIGGER_NODE[0] in used
        assert sel.text("Added to list")[0] in used
        assert sel.text("VIP")[0] in used

    async def test_add_action_drags_above_end_node(self):
        await self.driver.perform(step(UIOperation.ADD_ACTION, sidebar_label="Email"))
        mouse = self.page.mouse
        mouse.down.assert_awaited_once()
        mouse.up.assert_awaited_once()
        mouse.move.assert_awaited_with(120.0, 170, steps=15)

    async def test_add_action_without_bounding_box(self):
        self.loc.bounding_box.return_value = None
        with pytest.raises(UIStepError, match="drag handles"):
            await self.driver.perform(step(UIOperation.ADD_ACTION, sidebar_label="Email"))

    async def test_configure_delay(self):
        await self.driver.perform(step(UIOperation.CONFIGURE_DELAY, value=3, unit="days"))
        self.loc.fill.assert_awaited_once_with("3")
        assert sel.option("days")[0] in self.selectors_used()

    async def test_configure_email_sets_both_toggles(self):
        params = {"channel": "email", "name": "Hi", "smart_sending": False, "utm_tracking": True}
        await self.driver.perform(step(UIOperation.CONFIGURE_MESSAGE, **params))
        self.loc.fill.assert_awaited_once_with("Hi")
        assert [c.args[0] for c in self.loc.set_checked.await_args_list] == [False, True]

    async def test_configure_sms_skips_utm(self):
        params = {"channel": "sms", "name": "Hi", "smart_sending": True, "utm_tracking": True}
        await self.driver.perform(step(UIOperation.CONFIGURE_MESSAGE, **params))
        self.loc.set_checked.assert_awaited_once_with(True)

    async def test_dismiss_panel(self):
        await self.driver.perform(step(UIOperation.DISMISS_PANEL))
        self.page.keyboard.press.assert_awaited_once_with("Escape")
        self.page.mouse.click.assert_awaited_once_with(150, 250)

    async def test_time_based_reentry(self):
        await self.driver.perform(step(UIOperation.SET_REENTRY, mode="time-based", value=30, unit="days"))
        used = self.selectors_used()
        assert sel.radio("Time-based")[0] in used
        assert sel.option("Days")[0] in used
        self.loc.fill.assert_awaited_once_with("30")

    async def test_unknown_reentry_mode(self):
        with pytest.raises(UIStepError, match="Unknown re-entry mode"):
            await self.driver.perform(step(UIOperation.SET_REENTRY, mode="sometimes"))

    async def test_open_flow(self):
        await self.driver.open_flow("F1")
        self.page.goto.assert_awaited_once_with(sel.flow_edit_url("F1"), wait_until="domcontentloaded")


class TestDriverState:
    def test_flow_id_from_url(self):
        driver = PlaywrightDriver(make_page("https://www.klaviyo.com/flow/AbC123/edit"))
        assert driver.flow_id == "AbC123"

    def test_no_flow_id_on_list_page(self):
        assert PlaywrightDriver(make_page()).flow_id is None

    async def test_screenshot_written_under_dir(self, tmp_path):
        page = make_page()
        driver = PlaywrightDriver(page, screenshot_dir=str(tmp_path / "shots"))
        path = await driver.screenshot("flow-complete")
        assert path.startswith(str(tmp_path / "shots"))
        assert path.endswith("-flow-complete.png")
        assert (tmp_path / "shots").is_dir()
        page.screenshot.assert_awaited_once_with(path=path, full_page=True)
