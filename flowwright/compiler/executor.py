"""UI step executor: runs a compiled UI flow through a driver."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from flowwright.browser.base import UIDriver
from flowwright.compiler.types import CompiledUIFlow, ExecutionResult, StepResult, UIStep
from flowwright.utils.retry import RetryOptions, with_retry

logger = logging.getLogger(__name__)


class UIExecutor:
    """
    Executes compiled UI steps in order.

    A failing critical step aborts the run. A failing action step is
    recorded as a warning with a screenshot; the remaining steps of that
    action are skipped and execution continues with the next action.
    """

    def __init__(
        self,
        driver: UIDriver,
        retry: RetryOptions | None = None,
        *,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._driver = driver
        self._retry = retry or RetryOptions(max_attempts=2, base_delay=1.0)
        self._sleep = sleep

    async def execute(self, compiled: CompiledUIFlow) -> ExecutionResult:
        step_results: list[StepResult] = []
        warnings = list(compiled.warnings)
        screenshots: list[str] = []
        failed_actions: set[str] = set()
        error: str | None = None
        total_start = time.monotonic()

        for step in compiled.steps:
            if step.action_id and step.action_id in failed_actions:
                step_results.append(
                    StepResult(
                        step_index=step.step_index,
                        success=False,
                        operation=step.operation.value,
                        action_id=step.action_id,
                        skipped=True,
                    )
                )
                continue

            step_start = time.monotonic()
            try:
                await with_retry(
                    lambda s=step: self._driver.perform(s), step.label, self._retry, sleep=self._sleep
                )
            except Exception as exc:
                latency = (time.monotonic() - step_start) * 1000
                shot = await self._capture(step)
                if shot:
                    screenshots.append(shot)
                step_results.append(
                    StepResult(
                        step_index=step.step_index,
                        success=False,
                        operation=step.operation.value,
                        action_id=step.action_id,
                        error=str(exc),
                        screenshot=shot,
                        latency_ms=latency,
                    )
                )
                if step.critical:
                    error = f"{step.label} failed: {exc}"
                    logger.error("Critical step failed, aborting: %s", error)
                    break
                if step.action_id:
                    failed_actions.add(step.action_id)
                warnings.append(f"{step.label} failed: {exc}")
                logger.warning("%s failed, continuing: %s", step.label, exc)
                continue

            step_results.append(
                StepResult(
                    step_index=step.step_index,
                    success=True,
                    operation=step.operation.value,
                    action_id=step.action_id,
                    latency_ms=(time.monotonic() - step_start) * 1000,
                )
            )

        attempted = {s.action_id for s in compiled.steps if s.action_id}
        executed = {r.action_id for r in step_results if r.action_id}
        created = [
            a for a in compiled.action_order
            if a in attempted and a in executed and a not in failed_actions
        ]
        succeeded = sum(1 for r in step_results if r.success)

        return ExecutionResult(
            flow_name=compiled.flow_name,
            success=error is None,
            steps_executed=sum(1 for r in step_results if not r.skipped),
            steps_succeeded=succeeded,
            actions_created=len(created),
            step_results=step_results,
            warnings=warnings,
            screenshots=screenshots,
            error=error,
            total_latency_ms=(time.monotonic() - total_start) * 1000,
        )

    async def _capture(self, step: UIStep) -> str | None:
        try:
            return await self._driver.screenshot(f"step-{step.step_index}-{step.operation.value}")
        except Exception as exc:
            logger.warning("Screenshot after %s failed: %s", step.label, exc)
            return None
