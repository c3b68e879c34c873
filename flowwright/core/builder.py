"""FlowBuilder: main orchestrator over the REST and simulated-UI backends."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import AsyncContextManager, Awaitable, Callable

from flowwright.browser.base import UIDriver
from flowwright.browser.session import browser_session
from flowwright.compiler.executor import UIExecutor
from flowwright.compiler.types import (
    BuildMode,
    BuildResult,
    CompiledUIFlow,
    UIOperation,
    UIStep,
)
from flowwright.compiler.ui_compiler import UICompiler
from flowwright.config import AppConfig
from flowwright.core.errors import StructuralError
from flowwright.core.types import ActionType, Flow
from flowwright.core.validator import validate
from flowwright.remote.client import KlaviyoClient
from flowwright.remote.creator import APIFlowCreator, flow_url
from flowwright.utils.retry import RetryOptions, with_retry

logger = logging.getLogger(__name__)

HYBRID_FALLBACK_WARNING = "Built via browser automation (API fallback)."

SessionFactory = Callable[[AppConfig], AsyncContextManager[UIDriver]]


class FlowBuilder:
    """
    Validates a flow and builds it with the backend ``config.mode`` selects.

    Usage:
        builder = FlowBuilder(load_config())
        result = await builder.build(Flow.from_dict(definition))

    Hybrid mode sends flows containing an A/B split straight to the UI
    backend; everything else goes through the REST API first and falls back
    to the UI backend when that fails.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        client: KlaviyoClient | None = None,
        session_factory: SessionFactory = browser_session,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self._client = client
        self._session_factory = session_factory
        self._sleep = sleep
        self._ui_compiler = UICompiler()

    async def build(self, flow: Flow) -> BuildResult:
        """
        Build ``flow`` in the configured mode.

        Raises
        ------
        StructuralError
            The flow failed validation; nothing was sent anywhere.
        """
        validation = validate(flow)
        if not validation.valid:
            raise StructuralError(validation.errors)
        for warning in validation.warnings:
            logger.warning(warning)

        mode = self.config.mode
        if mode == BuildMode.API:
            result = await self.build_api(flow)
            if result.success and result.flow_id:
                await self._configure_reentry(flow, result)
        elif mode == BuildMode.BROWSER:
            result = await self.build_browser(flow)
        else:
            result = await self._build_hybrid(flow)

        result.warnings[:0] = validation.warnings
        return result

    # ------------------------------------------------------------------
    # Backends
    # ------------------------------------------------------------------

    async def build_api(self, flow: Flow) -> BuildResult:
        if self._client is not None:
            return await self._creator(self._client).build(flow)
        async with self._new_client() as client:
            return await self._creator(client).build(flow)

    async def build_browser(self, flow: Flow) -> BuildResult:
        start = time.monotonic()
        result = BuildResult(success=False, mode=BuildMode.BROWSER, flow_name=flow.name)
        compiled = self._ui_compiler.compile(flow)
        logger.info('Building flow "%s" via browser automation (%d steps)', flow.name, compiled.step_count)

        async with self._session_factory(self.config) as driver:
            execution = await UIExecutor(driver, self._ui_retry(), sleep=self._sleep).execute(compiled)
            final = await driver.screenshot("flow-complete")
            flow_id = driver.flow_id

        result.actions_created = execution.actions_created
        result.warnings.extend(execution.warnings)
        result.screenshots.extend(execution.screenshots)
        if final:
            result.screenshots.append(final)
        if execution.error:
            result.errors.append(f"Browser automation failed: {execution.error}")
        result.flow_id = flow_id
        result.flow_url = flow_url(flow_id) if flow_id else None
        result.success = execution.success and (execution.actions_created > 0 or not flow.actions)
        result.duration_ms = (time.monotonic() - start) * 1000
        logger.info(
            "Build complete: %d/%d actions.", execution.actions_created, len(compiled.action_order)
        )
        return result

    async def _build_hybrid(self, flow: Flow) -> BuildResult:
        if flow.has_action_type(ActionType.AB_SPLIT.value):
            logger.info("Flow contains an A/B split; using browser automation.")
            result = await self.build_browser(flow)
            result.mode = BuildMode.HYBRID
            return result

        api_result = await self.build_api(flow)
        if api_result.success:
            api_result.mode = BuildMode.HYBRID
            if api_result.flow_id:
                await self._configure_reentry(flow, api_result)
            return api_result

        logger.warning("API build failed; falling back to browser automation.")
        result = await self.build_browser(flow)
        result.mode = BuildMode.HYBRID
        result.warnings.append(HYBRID_FALLBACK_WARNING)
        result.warnings.extend(f"API attempt: {e}" for e in api_result.errors)
        return result

    async def _configure_reentry(self, flow: Flow, result: BuildResult) -> None:
        """Re-entry is not settable through the Flows API; apply it in the builder."""
        reentry = flow.settings.reentry if flow.settings else None
        if reentry is None:
            return
        if not self.config.storage_state:
            result.warnings.append(
                f"Re-entry ({reentry.describe()}) needs browser automation but no STORAGE_STATE "
                f"is configured. Set it manually: {result.flow_url}"
            )
            return

        step = UIStep(
            step_index=0,
            operation=UIOperation.SET_REENTRY,
            params={"mode": reentry.mode, "value": reentry.value, "unit": reentry.unit},
        )
        retry = self._ui_retry()
        try:
            async with self._session_factory(self.config) as driver:
                await with_retry(
                    lambda: driver.open_flow(result.flow_id),
                    f"Open flow {result.flow_id}",
                    retry,
                    sleep=self._sleep,
                )
                execution = await UIExecutor(driver, retry, sleep=self._sleep).execute(
                    CompiledUIFlow(flow_name=flow.name, steps=[step])
                )
        except Exception as exc:
            # the created flow stays in the result
            logger.warning("Re-entry follow-up failed for flow %s: %s", result.flow_id, exc)
            result.warnings.append(f"Re-entry ({reentry.describe()}) could not be applied: {exc}")
            result.warnings.append(f"Set re-entry manually: {result.flow_url}")
            return
        result.screenshots.extend(execution.screenshots)
        if execution.warnings:
            result.warnings.extend(execution.warnings)
            result.warnings.append(f"Set re-entry manually: {result.flow_url}")
        else:
            result.settings_applied["Re-entry"] = f"{reentry.describe()} (browser)"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _new_client(self) -> KlaviyoClient:
        return KlaviyoClient(
            self.config.api_key,
            revision=self.config.api_revision,
            base_url=self.config.base_url,
            timeout=self.config.page_timeout / 1000,
        )

    def _creator(self, client: KlaviyoClient) -> APIFlowCreator:
        return APIFlowCreator(
            client,
            from_email=self.config.email or None,
            from_label=self.config.from_label,
            max_retries=self.config.max_retries,
            pacing_delay=self.config.pacing_delay,
            sleep=self._sleep,
        )

    def _ui_retry(self) -> RetryOptions:
        return RetryOptions(max_attempts=max(1, min(self.config.max_retries, 2)))
