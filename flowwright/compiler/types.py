"""Compiled artifacts and build/execution results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class BuildMode(str, Enum):
    API = "api"
    BROWSER = "browser"
    HYBRID = "hybrid"


class UIOperation(str, Enum):
    CREATE_FLOW = "create-flow"
    SELECT_TRIGGER = "select-trigger"
    ADD_ACTION = "add-action"
    CONFIGURE_DELAY = "configure-delay"
    CONFIGURE_MESSAGE = "configure-message"
    CONFIGURE_SPLIT = "configure-split"
    CONFIGURE_AB_SPLIT = "configure-ab-split"
    DISMISS_PANEL = "dismiss-panel"
    SET_REENTRY = "set-reentry"


@dataclass
class UIStep:
    step_index: int
    operation: UIOperation
    action_id: str | None = None  # None for flow-level and cleanup steps
    params: dict[str, Any] = field(default_factory=dict)
    critical: bool = False  # failure aborts the whole build

    @property
    def label(self) -> str:
        owner = f" [{self.action_id}]" if self.action_id else ""
        return f"step {self.step_index}: {self.operation.value}{owner}"


@dataclass
class CompiledUIFlow:
    flow_name: str
    steps: list[UIStep]
    action_order: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def step_count(self) -> int:
        return len(self.steps)


@dataclass
class CompiledAPIFlow:
    payload: dict[str, Any]
    action_order: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def actions(self) -> list[dict[str, Any]]:
        return self.payload["data"]["attributes"]["definition"]["actions"]


@dataclass
class StepResult:
    step_index: int
    success: bool
    operation: str
    action_id: str | None = None
    error: str | None = None
    skipped: bool = False
    screenshot: str | None = None
    latency_ms: float = 0.0


@dataclass
class ExecutionResult:
    flow_name: str
    success: bool
    steps_executed: int
    steps_succeeded: int
    actions_created: int = 0
    step_results: list[StepResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    screenshots: list[str] = field(default_factory=list)
    error: str | None = None
    total_latency_ms: float = 0.0


@dataclass
class BuildResult:
    success: bool
    mode: BuildMode
    flow_name: str
    flow_id: str | None = None
    flow_url: str | None = None
    actions_created: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    screenshots: list[str] = field(default_factory=list)
    duration_ms: float = 0.0
    settings_applied: dict[str, str] = field(default_factory=dict)
    templates_applied: int = 0
    images_uploaded: int = 0
    template_ids: dict[str, str] = field(default_factory=dict)  # action id -> template id


@dataclass
class VerifyResult:
    success: bool
    flow_id: str
    flow_name: str
    expected_actions: int
    actual_actions: int
    mismatches: list[str] = field(default_factory=list)
