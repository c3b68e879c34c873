"""Unit tests for email HTML rendering and the image hosting pipeline."""

from __future__ import annotations

import copy
from unittest.mock import AsyncMock

import pytest

from flowwright.core.errors import NetworkError, RemoteValidationError
from flowwright.remote.content import (
    ContentPipeline,
    build_email_html,
    extract_image_sources,
    is_local_file,
    render_message_content,
)
from flowwright.utils.retry import RetryOptions

CONTENT = {
    "width": 640,
    "background_color": "#fafafa",
    "sections": [
        {"type": "image", "src": "./assets/hero.png", "alt": 'The "best" sale', "link": "https://shop.test/?a=1&b=2"},
        {"type": "text", "html": "<p>Hello <b>there</b></p>", "align": "left"},
        {"type": "button", "text": "Shop <now>", "url": "https://shop.test/cart"},
        {"type": "spacer"},
        {"type": "image", "src": "https://cdn.test/footer.png"},
        {"type": "image", "src": "./assets/hero.png"},
    ],
}


def upload_response(url):
    return {"data": {"id": "img", "attributes": {"image_url": url}}}


class TestBuildEmailHtml:
    def setup_method(self):
        self.html = build_email_html(CONTENT)

    def test_document_shell(self):
        assert self.html.startswith("<!DOCTYPE html>")
        assert 'width="640"' in self.html
        assert "max-width:640px;background-color:#fafafa;" in self.html

    def test_image_attributes_quoted(self):
        assert 'alt="The &quot;best&quot; sale"' in self.html
        assert 'href="https://shop.test/?a=1&b=2"' in self.html

    def test_text_html_kept_raw(self):
        assert "<p>Hello <b>there</b></p>" in self.html
        assert 'align="left"' in self.html

    def test_button_defaults_and_escaping(self):
        assert "background-color:#000000;color:#ffffff;" in self.html
        assert 'arcsize="8%"' in self.html
        assert "Shop &lt;now&gt;" in self.html
        assert "Shop <now>" not in self.html

    def test_spacer_default_height(self):
        assert "height:20px;line-height:20px;" in self.html

    def test_defaults_without_options(self):
        html = build_email_html({"sections": []})
        assert 'width="600"' in html
        assert "background-color:#ffffff;" in html

    def test_unknown_section_type(self):
        assert "<!-- Unknown section type -->" in build_email_html({"sections": [{"type": "video"}]})


class TestImageSources:
    @pytest.mark.parametrize(
        "src,expected",
        [
            ("./hero.png", True),
            ("/abs/hero.png", True),
            ("https://cdn.test/a.png", False),
            ("http://cdn.test/a.png", False),
            ("data:image/png;base64,AAA", False),
            ("", False),
            (None, False),
        ],
    )
    def test_is_local_file(self, src, expected):
        assert is_local_file(src) is expected

    def test_extract_in_section_order(self):
        local, remote = extract_image_sources(CONTENT)
        assert local == ["./assets/hero.png", "./assets/hero.png"]
        assert remote == ["https://cdn.test/footer.png"]

    def test_render_does_not_mutate_content(self):
        original = copy.deepcopy(CONTENT)
        html = render_message_content(CONTENT, {"./assets/hero.png": "https://img.test/hero.png"})
        assert CONTENT == original
        assert 'src="https://img.test/hero.png"' in html
        assert "./assets/hero.png" not in html


class TestContentPipeline:
    def setup_method(self):
        self.sleep = AsyncMock()
        self.uploader = AsyncMock(return_value=upload_response("https://img.test/hero.png"))
        self.pipeline = ContentPipeline(
            self.uploader, pacing_delay=0.4, retry=RetryOptions(max_attempts=2), sleep=self.sleep
        )

    async def test_prepare_uploads_each_local_image_once(self):
        html, warnings = await self.pipeline.prepare(CONTENT)
        assert warnings == []
        self.uploader.assert_awaited_once_with("./assets/hero.png")
        assert self.pipeline.uploads == 1
        assert self.pipeline.hosted == {"./assets/hero.png": "https://img.test/hero.png"}
        assert "./assets/hero.png" not in html

    async def test_uploads_cached_across_messages(self):
        await self.pipeline.prepare(CONTENT)
        await self.pipeline.prepare(CONTENT)
        self.uploader.assert_awaited_once()

    async def test_pacing_between_uploads(self):
        await self.pipeline.upload_asset("./a.png")
        self.sleep.assert_awaited_once_with(0.4)

    async def test_upload_retried(self):
        self.uploader.side_effect = [NetworkError("reset"), upload_response("https://img.test/a.png")]
        assert await self.pipeline.upload_asset("./a.png") == "https://img.test/a.png"
        assert self.uploader.await_count == 2

    async def test_missing_image_url(self):
        self.uploader.return_value = {"data": {"attributes": {}}}
        with pytest.raises(ValueError, match="no image_url"):
            await self.pipeline.upload_asset("./a.png")

    async def test_failed_upload_becomes_warning(self):
        self.uploader.side_effect = RemoteValidationError("bad image")
        html, warnings = await self.pipeline.prepare(CONTENT)
        assert warnings == ['Image upload failed for "./assets/hero.png": bad image']
        assert 'src="./assets/hero.png"' in html
        assert self.pipeline.uploads == 0

    async def test_from_client_uses_file_upload(self):
        client = AsyncMock()
        client.upload_image_from_file = AsyncMock(return_value=upload_response("https://img.test/x.png"))
        pipeline = ContentPipeline.from_client(client, pacing_delay=0)
        assert await pipeline.upload_asset("./x.png") == "https://img.test/x.png"
        client.upload_image_from_file.assert_awaited_once_with("./x.png")
