"""Abstract UI driver interface consumed by the step executor."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flowwright.compiler.types import UIStep


class UIDriver(ABC):
    """Performs one compiled UI step at a time against a live builder."""

    @abstractmethod
    async def perform(self, step: UIStep) -> None:
        """Carry out ``step``. Raise on failure; the executor handles retries."""

    @abstractmethod
    async def screenshot(self, name: str) -> str | None:
        """Capture the current screen and return the saved path, if any."""

    @property
    def flow_id(self) -> str | None:
        """Id of the flow currently open, when the driver can tell."""
        return None

    @abstractmethod
    async def open_flow(self, flow_id: str) -> None:
        """Open an existing flow in the builder."""
