"""REST build pipeline: templates, compile, create, then content and verification."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from flowwright.compiler.api_compiler import APICompiler, check_api_capabilities
from flowwright.compiler.types import BuildMode, BuildResult, VerifyResult
from flowwright.core.errors import (
    AuthError,
    FlowwrightError,
    RateLimitedError,
    RemoteError,
    RemoteValidationError,
)
from flowwright.core.settings import flow_defaults
from flowwright.core.traversal import correlate_by_order, traverse
from flowwright.core.types import (
    ActionType,
    Flow,
    MetricTrigger,
    SendEmailAction,
    SendMessageAction,
)
from flowwright.remote.client import KlaviyoClient
from flowwright.remote.content import ContentPipeline
from flowwright.remote.directory import TriggerDirectory
from flowwright.utils.retry import DEFAULT_RETRYABLE, RetryOptions, with_retry

logger = logging.getLogger(__name__)

FLOW_URL = "https://www.klaviyo.com/flow/{flow_id}/edit"


def flow_url(flow_id: str) -> str:
    return FLOW_URL.format(flow_id=flow_id)


def is_email_flow_action(resource: dict[str, Any]) -> bool:
    """Match remote email actions across naming variants (send-email, SEND_EMAIL, email)."""
    raw = (resource.get("attributes") or {}).get("action_type") or ""
    normalized = raw.lower().replace("-", "").replace("_", "").replace(" ", "")
    return normalized in ("sendemail", "email")


def _on_off(value: bool) -> str:
    return "ON" if value else "OFF"


def settings_summary(flow: Flow) -> dict[str, str]:
    """Human-readable record of the settings a build applied."""
    defaults = flow_defaults(flow.settings)
    applied = {
        "Smart Sending": _on_off(defaults.smart_sending),
        "UTM Tracking": _on_off(defaults.utm_tracking),
    }
    overrides = [
        a
        for a in flow.actions
        if isinstance(a, SendMessageAction)
        and (a.smart_sending is not None or a.utm_tracking is not None)
    ]
    if overrides:
        applied["Per-action overrides"] = f"{len(overrides)} action(s)"
    if isinstance(flow.trigger, MetricTrigger) and flow.trigger.trigger_filter is not None:
        applied["Trigger Filter"] = "Applied"
    if flow.profile_filter is not None:
        applied["Profile Filter"] = "Applied"
    if flow.settings and flow.settings.reentry:
        applied["Re-entry"] = flow.settings.reentry.describe()
    return applied


def error_hints(exc: BaseException) -> list[str]:
    """Operator hints for well-known remote failures."""
    if isinstance(exc, AuthError):
        return [
            "Authentication failed. Verify your KLAVIYO_API_KEY is correct and has write permissions."
        ]
    if isinstance(exc, RemoteValidationError):
        return ["Validation error. The flow definition may have invalid fields."]
    if isinstance(exc, RateLimitedError):
        return ["Rate limited. Wait a moment and try again."]
    return []


class APIFlowCreator:
    """
    Builds a flow through the Flows API.

    Pipeline: connection check, template pre-creation for emails that carry
    content, compilation, the create-flow call, and a content pass over any
    email whose template could not be attached up front.
    """

    def __init__(
        self,
        client: KlaviyoClient,
        *,
        directory: TriggerDirectory | None = None,
        content: ContentPipeline | None = None,
        from_email: str | None = None,
        from_label: str | None = None,
        max_retries: int = 3,
        pacing_delay: float = 0.4,
        settle_delay: float = 5.0,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._directory = directory or TriggerDirectory.from_client(client, sleep=sleep)
        self._content = content or ContentPipeline.from_client(
            client, pacing_delay=pacing_delay, sleep=sleep
        )
        self._compiler = APICompiler(
            self._directory, from_email=from_email, from_label=from_label
        )
        self._max_retries = max_retries
        self._pacing_delay = pacing_delay
        self._settle_delay = settle_delay
        self._sleep = sleep

    async def build(self, flow: Flow) -> BuildResult:
        start = time.monotonic()
        result = BuildResult(success=False, mode=BuildMode.API, flow_name=flow.name)
        logger.info('Building flow "%s" via API', flow.name)

        try:
            check_api_capabilities(flow)

            try:
                await self._call(self._client.ping, "Check API connection")
            except RemoteError as exc:
                result.errors.append("Failed to connect to Klaviyo API. Check your API key.")
                result.errors.extend(error_hints(exc))
                logger.error("Klaviyo API connection failed: %s", exc)
                return result

            html_by_action, template_ids = await self._precreate_templates(flow, result)

            compiled = await self._compiler.compile(flow, template_ids)
            result.warnings.extend(compiled.warnings)

            response = await self._call(
                lambda: self._client.create_flow(compiled.payload),
                "Create flow via API",
                attempts=self._max_retries,
            )
        except FlowwrightError as exc:
            result.errors.append(f"API flow creation failed: {exc}")
            result.errors.extend(error_hints(exc))
            logger.error("Flow creation failed: %s", exc)
            return result
        finally:
            result.duration_ms = (time.monotonic() - start) * 1000

        flow_id = (response.get("data") or {}).get("id")
        result.success = True
        result.flow_id = flow_id
        result.flow_url = flow_url(flow_id) if flow_id else None
        result.actions_created = len(flow.actions)
        result.template_ids = template_ids
        result.settings_applied = settings_summary(flow)

        pending = {
            action_id: html
            for action_id, html in html_by_action.items()
            if action_id not in template_ids
        }
        if flow_id and pending:
            try:
                applied, warnings = await self.apply_email_content(flow_id, flow, pending)
            except FlowwrightError as exc:
                logger.warning("Email content pass failed for flow %s: %s", flow_id, exc)
                result.warnings.append(
                    f"Email content could not be applied: {exc}. "
                    f"Apply templates manually at {result.flow_url}"
                )
            else:
                result.templates_applied += applied
                result.warnings.extend(warnings)

        result.images_uploaded = self._content.uploads
        if result.templates_applied:
            result.settings_applied["Email Content"] = f"{result.templates_applied} template(s) created"
        if result.images_uploaded:
            result.settings_applied["Images Uploaded"] = f"{result.images_uploaded} image(s)"

        result.duration_ms = (time.monotonic() - start) * 1000
        logger.info("Flow created: %s (%s)", flow_id, result.flow_url)
        return result

    async def _call(
        self, operation: Callable[[], Awaitable[Any]], label: str, *, attempts: int = 3
    ) -> Any:
        return await with_retry(
            operation,
            label,
            RetryOptions(max_attempts=attempts, retryable_errors=DEFAULT_RETRYABLE),
            sleep=self._sleep,
        )

    async def _precreate_templates(
        self, flow: Flow, result: BuildResult
    ) -> tuple[dict[str, str], dict[str, str]]:
        """Return ``(html by action id, template id by action id)``."""
        emails = [
            a for a in traverse(flow) if isinstance(a, SendEmailAction) and a.content
        ]
        html_by_action: dict[str, str] = {}
        template_ids: dict[str, str] = {}
        if not emails:
            return html_by_action, template_ids

        logger.info("Pre-creating %d email template(s)...", len(emails))
        for email in emails:
            html, warnings = await self._content.prepare(email.content or {})
            result.warnings.extend(warnings)
            html_by_action[email.id] = html
            try:
                created = await self._call(
                    lambda e=email, h=html: self._client.create_template(e.label, h),
                    f'Create template for "{email.label}"',
                    attempts=2,
                )
            except FlowwrightError as exc:
                logger.warning('Failed to create template for "%s": %s', email.label, exc)
                result.warnings.append(f'Template for "{email.label}" could not be pre-created.')
                continue
            template_id = (created.get("data") or {}).get("id")
            if template_id:
                template_ids[email.id] = template_id
                result.templates_applied += 1
            if self._pacing_delay:
                await self._sleep(self._pacing_delay)
        return html_by_action, template_ids

    async def apply_email_content(
        self, flow_id: str, flow: Flow, html_by_action: dict[str, str]
    ) -> tuple[int, list[str]]:
        """
        Push rendered HTML into the templates behind a created flow's emails.

        Local email actions are paired with remote email flow-actions by
        position (see :func:`flowwright.core.traversal.correlate_by_order`).
        Returns ``(templates applied, warnings)``.
        """
        warnings: list[str] = []
        applied = 0
        if self._settle_delay:
            logger.info("Waiting for the flow's actions to finalize...")
            await self._sleep(self._settle_delay)

        remote_actions = await self._call(
            lambda: self._client.get_flow_actions(flow_id), "Fetch flow actions"
        )
        pairs = correlate_by_order(
            traverse(flow), remote_actions, ActionType.SEND_EMAIL.value, is_email_flow_action
        )
        for local, remote in pairs:
            html = html_by_action.get(local.id)
            if html is None:
                continue
            remote_id = remote.get("id")
            if not remote_id:
                warnings.append(f'Remote action for "{local.label}" has no id. Apply template manually.')
                continue
            try:
                if await self._apply_one(local.label, remote_id, html, warnings):
                    applied += 1
            except FlowwrightError as exc:
                logger.warning('Failed to apply content to "%s": %s', local.label, exc)
                warnings.append(f'Content for "{local.label}" could not be applied: {exc}')
            if self._pacing_delay:
                await self._sleep(self._pacing_delay)
        return applied, warnings

    async def _apply_one(
        self, name: str, remote_action_id: str, html: str, warnings: list[str]
    ) -> bool:
        messages = await self._call(
            lambda: self._client.get_flow_action_messages(remote_action_id),
            f'Fetch messages for "{name}"',
        )
        first = messages[0] if messages else None
        message_id = first.get("id") if isinstance(first, dict) else None
        if not message_id:
            warnings.append(f'No message found for "{name}". Apply template manually.')
            return False

        template = await self._client.get_template_for_message(message_id)
        data = (template or {}).get("data") or {}
        template_id = data.get("id")
        editor_type = (data.get("attributes") or {}).get("editor_type") or "UNKNOWN"

        if template_id:
            try:
                await self._call(
                    lambda: self._client.update_template(template_id, html),
                    f'Update template for "{name}"',
                )
                logger.info('Template %s (%s) updated for "%s"', template_id, editor_type, name)
                return True
            except RemoteValidationError as exc:
                logger.warning(
                    "Template %s (%s) cannot be updated via API: %s", template_id, editor_type, exc
                )

        created = await self._call(
            lambda: self._client.create_template(f"{name} (generated)", html),
            f'Create template for "{name}"',
        )
        new_id = (created.get("data") or {}).get("id")
        warnings.append(
            f'Template for "{name}" was created separately ({new_id}). '
            "Link it to the flow email manually."
        )
        return True

    async def verify(self, flow_id: str, flow: Flow | None = None) -> VerifyResult:
        """
        Compare a created flow against its definition.

        Without ``flow`` only the remote side is reported.
        """
        response = await self._client.get_flow(flow_id, include_definition=True)
        data = response.get("data") or {}
        attributes = data.get("attributes") or {}
        remote_actions = (attributes.get("definition") or {}).get("actions") or []

        result = VerifyResult(
            success=True,
            flow_id=data.get("id") or flow_id,
            flow_name=attributes.get("name") or "",
            expected_actions=len(flow.actions) if flow else len(remote_actions),
            actual_actions=len(remote_actions),
        )
        if flow is None:
            return result

        if result.flow_name != flow.name:
            result.mismatches.append(
                f'Flow name is "{result.flow_name}", expected "{flow.name}".'
            )
        if result.actual_actions != result.expected_actions:
            result.mismatches.append(
                f"Flow has {result.actual_actions} action(s), expected {result.expected_actions}."
            )
        expected_types = sorted(a.type for a in flow.actions)
        actual_types = sorted(str(a.get("type")) for a in remote_actions)
        if expected_types != actual_types:
            result.mismatches.append(
                f"Action types differ: expected {expected_types}, got {actual_types}."
            )
        result.success = not result.mismatches
        return result
