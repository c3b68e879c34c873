from flowwright.browser.base import UIDriver
from flowwright.browser.driver import PlaywrightDriver
from flowwright.browser.session import browser_session

__all__ = ["PlaywrightDriver", "UIDriver", "browser_session"]
