"""Unit tests for KlaviyoClient against an in-process httpx transport."""

from __future__ import annotations

import json

import httpx
import pytest

from flowwright.core.errors import (
    AuthError,
    NetworkError,
    RateLimitedError,
    RemoteError,
    RemoteValidationError,
    ServerError,
)
from flowwright.remote.client import (
    DEFAULT_REVISION,
    STABLE_REVISION,
    KlaviyoClient,
    error_for_status,
)


class Recorder:
    """Collects requests and answers them from a route table."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        handler = self.routes.get(key)
        if handler is None:
            return httpx.Response(404, json={"errors": [{"detail": "no route"}]})
        if callable(handler):
            return handler(request)
        return handler


def make_client(routes, **kwargs) -> tuple[KlaviyoClient, Recorder]:
    recorder = Recorder(routes)
    client = KlaviyoClient("pk_test", transport=httpx.MockTransport(recorder), **kwargs)
    return client, recorder


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status,cls",
        [
            (401, AuthError),
            (403, AuthError),
            (400, RemoteValidationError),
            (409, RemoteValidationError),
            (422, RemoteValidationError),
            (429, RateLimitedError),
            (500, ServerError),
            (503, ServerError),
        ],
    )
    def test_status_classes(self, status, cls):
        assert type(error_for_status(status, "x")) is cls

    def test_other_statuses_are_plain_remote_errors(self):
        assert type(error_for_status(404, "x")) is RemoteError


class TestRequests:
    async def test_headers(self):
        client, recorder = make_client({("GET", "/api/flows/"): httpx.Response(200, json={"data": []})})
        async with client:
            await client.list_flows()
        request = recorder.requests[0]
        assert request.headers["Authorization"] == "Klaviyo-API-Key pk_test"
        assert request.headers["revision"] == DEFAULT_REVISION
        assert request.headers["Accept"] == "application/json"

    async def test_create_flow_posts_payload(self):
        created = {"data": {"id": "F1", "attributes": {"name": "Welcome"}}}
        client, recorder = make_client({("POST", "/api/flows/"): httpx.Response(201, json=created)})
        async with client:
            response = await client.create_flow({"data": {"type": "flow"}})
        assert response == created
        assert json.loads(recorder.requests[0].content) == {"data": {"type": "flow"}}

    async def test_error_detail_in_message(self):
        body = {"errors": [{"detail": "Invalid trigger"}]}
        client, _ = make_client({("POST", "/api/flows/"): httpx.Response(400, json=body)})
        async with client:
            with pytest.raises(RemoteValidationError) as excinfo:
                await client.create_flow({})
        assert str(excinfo.value) == "POST /flows/ returned 400: Invalid trigger"
        assert excinfo.value.status_code == 400
        assert excinfo.value.body == body

    async def test_transport_error_is_network_error(self):
        def boom(request):
            raise httpx.ConnectError("refused", request=request)

        client, _ = make_client({("GET", "/api/flows/"): boom})
        async with client:
            with pytest.raises(NetworkError, match="refused"):
                await client.list_flows()

    async def test_list_flows_status_filter(self):
        client, recorder = make_client({("GET", "/api/flows/"): httpx.Response(200, json={"data": [{"id": "F1"}]})})
        async with client:
            flows = await client.list_flows(status="draft")
        assert flows == [{"id": "F1"}]
        assert recorder.requests[0].url.params["filter"] == 'equals(status,"draft")'

    async def test_get_flow_requests_definition(self):
        client, recorder = make_client({("GET", "/api/flows/F1/"): httpx.Response(200, json={"data": {"id": "F1"}})})
        async with client:
            await client.get_flow("F1")
        assert recorder.requests[0].url.params["additional-fields[flow]"] == "definition"

    async def test_update_flow_status(self):
        client, recorder = make_client({("PATCH", "/api/flows/F1/"): httpx.Response(200, json={})})
        async with client:
            await client.update_flow_status("F1", "live")
        body = json.loads(recorder.requests[0].content)
        assert body["data"]["attributes"] == {"status": "live"}

    async def test_update_flow_status_rejects_unknown(self):
        client, recorder = make_client({})
        async with client:
            with pytest.raises(ValueError):
                await client.update_flow_status("F1", "paused")
        assert recorder.requests == []

    async def test_connection(self):
        client, _ = make_client({("GET", "/api/flows/"): httpx.Response(200, json={"data": []})})
        async with client:
            assert await client.test_connection() is True

    async def test_connection_failure(self):
        client, _ = make_client({("GET", "/api/flows/"): httpx.Response(401, json={})})
        async with client:
            assert await client.test_connection() is False

    async def test_ping_raises_mapped_error(self):
        client, recorder = make_client({("GET", "/api/flows/"): httpx.Response(503, json={})})
        async with client:
            with pytest.raises(ServerError):
                await client.ping()
        assert recorder.requests[0].url.params["page[size]"] == "1"


class TestListings:
    async def test_metrics_follow_pagination(self):
        page_two = "https://a.klaviyo.com/api/metrics/?page[cursor]=abc"

        def metrics(request):
            if "page[cursor]" in request.url.params:
                return httpx.Response(200, json={"data": [{"id": "M2", "attributes": {"name": "Placed Order"}}], "links": {"next": None}})
            return httpx.Response(200, json={"data": [{"id": "M1", "attributes": {"name": "Started Checkout"}}], "links": {"next": page_two}})

        client, recorder = make_client({("GET", "/api/metrics/"): metrics})
        async with client:
            found = await client.get_all_metrics()
        assert found == [
            {"id": "M1", "name": "Started Checkout"},
            {"id": "M2", "name": "Placed Order"},
        ]
        assert len(recorder.requests) == 2
        assert all(r.headers["revision"] == STABLE_REVISION for r in recorder.requests)

    async def test_lists(self):
        body = {"data": [{"id": "L1", "attributes": {"name": "VIP"}}]}
        client, _ = make_client({("GET", "/api/lists/"): httpx.Response(200, json=body)})
        async with client:
            assert await client.get_all_lists() == [{"id": "L1", "name": "VIP"}]


class TestImages:
    async def test_upload_from_file(self, tmp_path):
        image = tmp_path / "hero.png"
        image.write_bytes(b"\x89PNG")
        body = {"data": {"attributes": {"image_url": "https://img.test/hero.png"}}}
        client, recorder = make_client({("POST", "/api/image-upload/"): httpx.Response(201, json=body)})
        async with client:
            response = await client.upload_image_from_file(str(image))
        assert response == body
        request = recorder.requests[0]
        assert request.headers["revision"] == STABLE_REVISION
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b"hero.png" in request.content

    async def test_upload_missing_file(self, tmp_path):
        client, _ = make_client({})
        async with client:
            with pytest.raises(FileNotFoundError):
                await client.upload_image_from_file(str(tmp_path / "missing.png"))

    async def test_upload_from_url(self):
        client, recorder = make_client({("POST", "/api/images/"): httpx.Response(201, json={"data": {}})})
        async with client:
            await client.upload_image_from_url("https://cdn.test/a.png", name="hero")
        attrs = json.loads(recorder.requests[0].content)["data"]["attributes"]
        assert attrs == {"import_from_url": "https://cdn.test/a.png", "name": "hero", "hidden": False}


class TestTemplates:
    def test_revision_chain_deduplicated(self):
        client = KlaviyoClient("pk_test")
        assert client.template_revisions() == [DEFAULT_REVISION, STABLE_REVISION, "2025-01-15"]

    async def test_template_lookup_falls_through_revisions(self):
        def template(request):
            if request.headers["revision"] == STABLE_REVISION:
                return httpx.Response(200, json={"data": {"id": "T1", "attributes": {"editor_type": "CODE"}}})
            return httpx.Response(404, json={"errors": [{"detail": "not found"}]})

        client, recorder = make_client({("GET", "/api/flow-messages/MSG/template/"): template})
        async with client:
            found = await client.get_template_for_message("MSG")
        assert found["data"]["id"] == "T1"
        assert [r.headers["revision"] for r in recorder.requests] == [DEFAULT_REVISION, STABLE_REVISION]

    async def test_template_lookup_none_found(self):
        client, recorder = make_client(
            {("GET", "/api/flow-messages/MSG/template/"): httpx.Response(200, json={"data": None})}
        )
        async with client:
            assert await client.get_template_for_message("MSG") is None
        assert len(recorder.requests) == 3

    async def test_template_lookup_auth_error_propagates(self):
        client, _ = make_client(
            {("GET", "/api/flow-messages/MSG/template/"): httpx.Response(403, json={})}
        )
        async with client:
            with pytest.raises(AuthError):
                await client.get_template_for_message("MSG")

    async def test_create_template_is_code_editor(self):
        client, recorder = make_client({("POST", "/api/templates/"): httpx.Response(201, json={"data": {"id": "T2"}})})
        async with client:
            created = await client.create_template("Welcome", "<html></html>")
        assert created["data"]["id"] == "T2"
        attrs = json.loads(recorder.requests[0].content)["data"]["attributes"]
        assert attrs == {"name": "Welcome", "editor_type": "CODE", "html": "<html></html>"}

    async def test_update_template(self):
        client, recorder = make_client({("PATCH", "/api/templates/T2/"): httpx.Response(200, json={})})
        async with client:
            await client.update_template("T2", "<p>new</p>")
        data = json.loads(recorder.requests[0].content)["data"]
        assert data == {"type": "template", "id": "T2", "attributes": {"html": "<p>new</p>"}}

    async def test_flow_actions_and_messages(self):
        client, _ = make_client(
            {
                ("GET", "/api/flows/F1/flow-actions/"): httpx.Response(200, json={"data": [{"id": "A1"}]}),
                ("GET", "/api/flow-actions/A1/flow-messages/"): httpx.Response(200, json={"data": [{"id": "MSG"}]}),
            }
        )
        async with client:
            assert await client.get_flow_actions("F1") == [{"id": "A1"}]
            assert await client.get_flow_action_messages("A1") == [{"id": "MSG"}]
