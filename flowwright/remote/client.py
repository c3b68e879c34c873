"""
Async client for the Klaviyo REST API.

Covers the endpoints the build pipeline needs: flows, metrics, lists,
images, flow actions/messages and templates. HTTP failures are mapped onto
the :mod:`flowwright.core.errors` hierarchy so callers can decide what to
retry.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from flowwright.core.errors import (
    AuthError,
    NetworkError,
    RateLimitedError,
    RemoteError,
    RemoteValidationError,
    ServerError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://a.klaviyo.com/api"
DEFAULT_REVISION = "2024-10-15.pre"
# Metrics, lists, images, templates and flow actions use the stable revision
STABLE_REVISION = "2024-10-15"
FLOW_STATUSES = ("draft", "manual", "live")


def error_for_status(status: int, message: str, body: Any = None) -> RemoteError:
    if status in (401, 403):
        return AuthError(message, status_code=status, body=body)
    if status in (400, 409, 422):
        return RemoteValidationError(message, status_code=status, body=body)
    if status == 429:
        return RateLimitedError(message, status_code=status, body=body)
    if status >= 500:
        return ServerError(message, status_code=status, body=body)
    return RemoteError(message, status_code=status, body=body)


def _error_detail(body: Any) -> str:
    """First ``errors[].detail`` of a JSON:API error body, if any."""
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get("detail") or errors[0].get("title") or "")
    return ""


class KlaviyoClient:
    """
    Thin async wrapper over ``httpx.AsyncClient``.

    Example:
        async with KlaviyoClient(api_key="pk_...") as client:
            flows = await client.list_flows(status="draft")
    """

    def __init__(
        self,
        api_key: str,
        *,
        revision: str = DEFAULT_REVISION,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.revision = revision
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Klaviyo-API-Key {api_key}",
                "Accept": "application/json",
                "revision": revision,
            },
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> KlaviyoClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        revision: str | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        headers = dict(kwargs.pop("headers", None) or {})
        if revision:
            headers["revision"] = revision
        logger.debug("API request: %s %s", method, path)
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"{method} {path} timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc

        logger.debug("API response: %s %s", response.status_code, path)
        if response.is_success:
            if not response.content:
                return {}
            return response.json()

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        detail = _error_detail(body)
        message = f"{method} {path} returned {response.status_code}"
        if detail:
            message = f"{message}: {detail}"
        logger.error("API error: %s", message)
        raise error_for_status(response.status_code, message, body)

    async def _get_all(self, path: str, *, revision: str | None = None) -> list[dict[str, Any]]:
        """Follow ``links.next`` until the collection is exhausted."""
        items: list[dict[str, Any]] = []
        url: str | None = path
        while url:
            page = await self._request("GET", url, revision=revision)
            items.extend(page.get("data") or [])
            url = (page.get("links") or {}).get("next")
        return items

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    async def create_flow(self, payload: dict[str, Any]) -> dict[str, Any]:
        logger.info("Creating flow via Klaviyo API...")
        created = await self._request("POST", "/flows/", json=payload)
        data = created.get("data") or {}
        logger.info(
            "Flow created: %s (%s)", data.get("id"), (data.get("attributes") or {}).get("name")
        )
        return created

    async def get_flow(self, flow_id: str, include_definition: bool = True) -> dict[str, Any]:
        params = {"additional-fields[flow]": "definition"} if include_definition else None
        return await self._request("GET", f"/flows/{flow_id}/", params=params)

    async def list_flows(self, status: str | None = None) -> list[dict[str, Any]]:
        params = {"filter": f'equals(status,"{status}")'} if status else None
        response = await self._request("GET", "/flows/", params=params)
        return response.get("data") or []

    async def update_flow_status(self, flow_id: str, status: str) -> None:
        if status not in FLOW_STATUSES:
            raise ValueError(f"Invalid flow status {status!r}; expected one of {FLOW_STATUSES}")
        await self._request(
            "PATCH",
            f"/flows/{flow_id}/",
            json={"data": {"type": "flow", "id": flow_id, "attributes": {"status": status}}},
        )
        logger.info("Flow %s status updated to: %s", flow_id, status)

    async def ping(self) -> None:
        """Cheapest authenticated call; raises the mapped error on failure."""
        await self._request("GET", "/flows/", params={"page[size]": 1})

    async def test_connection(self) -> bool:
        try:
            await self.ping()
        except RemoteError as exc:
            logger.error("Klaviyo API connection failed: %s", exc)
            return False
        logger.info("Klaviyo API connection successful.")
        return True

    # ------------------------------------------------------------------
    # Metrics and lists
    # ------------------------------------------------------------------

    async def get_all_metrics(self) -> list[dict[str, str]]:
        metrics = await self._get_all("/metrics/", revision=STABLE_REVISION)
        return [
            {"id": m.get("id"), "name": (m.get("attributes") or {}).get("name")} for m in metrics
        ]

    async def get_all_lists(self) -> list[dict[str, str]]:
        lists = await self._get_all("/lists/", revision=STABLE_REVISION)
        return [
            {"id": entry.get("id"), "name": (entry.get("attributes") or {}).get("name")}
            for entry in lists
        ]

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def upload_image_from_url(self, image_url: str, name: str | None = None) -> dict[str, Any]:
        logger.info("Uploading image from URL: %s", name or image_url)
        return await self._request(
            "POST",
            "/images/",
            revision=STABLE_REVISION,
            json={
                "data": {
                    "type": "image",
                    "attributes": {
                        "import_from_url": image_url,
                        "name": name or "flow-email-image",
                        "hidden": False,
                    },
                }
            },
        )

    async def upload_image_from_file(self, file_path: str, name: str | None = None) -> dict[str, Any]:
        path = Path(file_path).resolve()
        if not path.is_file():
            raise FileNotFoundError(f"Image file not found: {path}")
        file_name = name or path.name
        logger.info("Uploading image from file: %s", file_name)
        with path.open("rb") as fh:
            return await self._request(
                "POST",
                "/image-upload/",
                revision=STABLE_REVISION,
                files={"file": (path.name, fh.read())},
                data={"name": file_name, "hidden": "false"},
            )

    # ------------------------------------------------------------------
    # Flow actions, messages and templates
    # ------------------------------------------------------------------

    async def get_flow_actions(self, flow_id: str) -> list[dict[str, Any]]:
        response = await self._request(
            "GET", f"/flows/{flow_id}/flow-actions/", revision=STABLE_REVISION
        )
        actions = response.get("data") or []
        logger.debug("Found %d flow actions for flow %s", len(actions), flow_id)
        return actions

    async def get_flow_action_messages(self, action_id: str) -> list[dict[str, Any]]:
        response = await self._request(
            "GET", f"/flow-actions/{action_id}/flow-messages/", revision=STABLE_REVISION
        )
        return response.get("data") or []

    def template_revisions(self) -> list[str]:
        """Revisions tried, in order, when looking up a flow message's template."""
        chain = [self.revision, STABLE_REVISION, "2025-01-15", "2024-10-15.pre"]
        return list(dict.fromkeys(chain))

    async def get_template_for_message(self, message_id: str) -> dict[str, Any] | None:
        """
        Fetch the template behind a flow message.

        Messages created through the beta Flows API are not always visible on
        every revision, so each revision in :meth:`template_revisions` is
        tried until one returns a template id.
        """
        for revision in self.template_revisions():
            try:
                response = await self._request(
                    "GET", f"/flow-messages/{message_id}/template/", revision=revision
                )
            except RemoteError as exc:
                if isinstance(exc, AuthError):
                    raise
                logger.debug("Template fetch failed with revision %s: %s", revision, exc)
                continue
            if (response.get("data") or {}).get("id"):
                logger.debug("Got template for message %s via revision %s", message_id, revision)
                return response
        logger.debug("No template found for message %s across all revisions", message_id)
        return None

    async def create_template(self, name: str, html: str) -> dict[str, Any]:
        logger.info("Creating template: %s", name)
        created = await self._request(
            "POST",
            "/templates/",
            revision=STABLE_REVISION,
            json={
                "data": {
                    "type": "template",
                    "attributes": {"name": name, "editor_type": "CODE", "html": html},
                }
            },
        )
        logger.info("Template created: %s (%s)", (created.get("data") or {}).get("id"), name)
        return created

    async def update_template(
        self, template_id: str, html: str, name: str | None = None
    ) -> dict[str, Any]:
        """Replace a template's HTML. Only CODE templates accept this."""
        attributes = {"html": html}
        if name:
            attributes["name"] = name
        logger.info("Updating template: %s", template_id)
        return await self._request(
            "PATCH",
            f"/templates/{template_id}/",
            revision=STABLE_REVISION,
            json={"data": {"type": "template", "id": template_id, "attributes": attributes}},
        )
