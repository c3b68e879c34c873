"""Email content pipeline: sliced-section HTML rendering and image hosting."""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Awaitable, Callable

from jinja2 import Environment

from flowwright.utils.retry import RetryOptions, with_retry

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 600
DEFAULT_BACKGROUND = "#ffffff"
FONT_STACK = "-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Helvetica,Arial,sans-serif"


def _quote_attr(value: object) -> str:
    """Escape double quotes only; href/src values keep & intact."""
    return str(value).replace('"', "&quot;")


_ENV = Environment(autoescape=False, keep_trailing_newline=True)
_ENV.filters["quote_attr"] = _quote_attr

_EMAIL_TEMPLATE = _ENV.from_string(
    """<!DOCTYPE html>
<html lang="en" xmlns="http://www.w3.org/1999/xhtml" xmlns:v="urn:schemas-microsoft-com:vml" xmlns:o="urn:schemas-microsoft-com:office:office">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <meta http-equiv="X-UA-Compatible" content="IE=edge">
  <meta name="x-apple-disable-message-reformatting">
  <title></title>
  <style>
    body, table, td, a { -webkit-text-size-adjust: 100%; -ms-text-size-adjust: 100%; }
    table, td { mso-table-lspace: 0pt; mso-table-rspace: 0pt; }
    img { -ms-interpolation-mode: bicubic; border: 0; height: auto; line-height: 100%; outline: none; text-decoration: none; }
    body { margin: 0; padding: 0; width: 100% !important; height: 100% !important; }
    @media only screen and (max-width: 620px) {
      .email-container { width: 100% !important; max-width: 100% !important; }
      .fluid-image { width: 100% !important; max-width: 100% !important; height: auto !important; }
      .mobile-padding { padding-left: 16px !important; padding-right: 16px !important; }
      .mobile-button { width: 100% !important; }
    }
  </style>
</head>
<body style="margin:0;padding:0;background-color:#f4f4f4;font-family:{{ font }};">
  <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color:#f4f4f4;">
    <tr>
      <td align="center" valign="top" style="padding:20px 0;">
        <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="{{ width }}" class="email-container" style="max-width:{{ width }}px;background-color:{{ background }};">
{%- for s in sections %}
{%- if s.type == "image" %}
          <tr>
            <td align="center" valign="top" style="padding:0;line-height:0;font-size:0;">
              {% if s.link %}<a href="{{ s.link | quote_attr }}" target="_blank" style="display:block;">{% endif -%}
              <img src="{{ s.src | quote_attr }}" alt="{{ (s.alt or '') | quote_attr }}" width="{{ s.width or width }}" class="fluid-image" style="display:block;width:100%;max-width:{{ s.width or width }}px;height:auto;border:0;" />
              {%- if s.link %}</a>{% endif %}
            </td>
          </tr>
{%- elif s.type == "text" %}
          <tr>
            <td align="{{ s.align or 'center' }}" valign="top" class="mobile-padding" style="padding:{{ s.padding }}px {{ s.padding + 10 }}px;font-family:{{ font }};font-size:16px;line-height:1.5;color:#333333;">
              {{ s.html }}
            </td>
          </tr>
{%- elif s.type == "button" %}
          <tr>
            <td align="center" valign="top" style="padding:{{ s.padding }}px {{ s.padding + 10 }}px;">
              <!--[if mso]>
              <v:roundrect xmlns:v="urn:schemas-microsoft-com:vml" xmlns:w="urn:schemas-microsoft-com:office:word" href="{{ s.url | quote_attr }}" style="height:48px;v-text-anchor:middle;width:250px;" arcsize="{{ s.arcsize }}%" strokecolor="{{ s.background }}" fillcolor="{{ s.background }}">
                <w:anchorlock/>
                <center style="color:{{ s.color }};font-family:sans-serif;font-size:16px;font-weight:bold;">{{ s.text | e }}</center>
              </v:roundrect>
              <![endif]-->
              <!--[if !mso]><!-->
              <a href="{{ s.url | quote_attr }}" target="_blank" class="mobile-button" style="display:inline-block;background-color:{{ s.background }};color:{{ s.color }};font-family:{{ font }};font-size:16px;font-weight:600;line-height:48px;text-align:center;text-decoration:none;border-radius:{{ s.border_radius }}px;padding:0 32px;min-width:200px;">
                {{ s.text | e }}
              </a>
              <!--<![endif]-->
            </td>
          </tr>
{%- elif s.type == "spacer" %}
          <tr>
            <td style="padding:0;height:{{ s.height }}px;line-height:{{ s.height }}px;font-size:1px;">&nbsp;</td>
          </tr>
{%- else %}
          <!-- Unknown section type -->
{%- endif %}
{%- endfor %}
        </table>
      </td>
    </tr>
  </table>
</body>
</html>"""
)


def _with_defaults(section: dict[str, Any]) -> dict[str, Any]:
    s = dict(section)
    kind = s.get("type")
    if kind in ("text", "button"):
        s["padding"] = s.get("padding") if s.get("padding") is not None else 20
    if kind == "button":
        s["background"] = s.get("background") or "#000000"
        s["color"] = s.get("color") or "#ffffff"
        radius = s.get("border_radius") if s.get("border_radius") is not None else 4
        s["border_radius"] = radius
        s["arcsize"] = round(radius / 48 * 100)
        s.setdefault("text", "")
        s.setdefault("url", "")
    if kind == "spacer":
        s["height"] = s.get("height") or 20
    if kind == "image":
        s.setdefault("src", "")
    return s


def build_email_html(content: dict[str, Any]) -> str:
    """Render sliced email content into a table-based HTML document."""
    return _EMAIL_TEMPLATE.render(
        sections=[_with_defaults(s) for s in content.get("sections") or []],
        width=content.get("width") or DEFAULT_WIDTH,
        background=content.get("background_color") or DEFAULT_BACKGROUND,
        font=FONT_STACK,
    )


def is_local_file(src: str | None) -> bool:
    """Anything that is not an http(s) URL or a data URI is treated as a local path."""
    if not src or not src.strip():
        return False
    return not src.startswith(("http://", "https://", "data:"))


def extract_image_sources(content: dict[str, Any]) -> tuple[list[str], list[str]]:
    """Return ``(local, remote)`` image sources in section order."""
    local: list[str] = []
    remote: list[str] = []
    for section in content.get("sections") or []:
        if section.get("type") != "image":
            continue
        src = section.get("src") or ""
        (local if is_local_file(src) else remote).append(src)
    return local, remote


def render_message_content(content: dict[str, Any], hosted: dict[str, str]) -> str:
    """
    Render ``content`` with local image sources swapped for hosted URLs.

    ``content`` itself is left untouched.
    """
    rendered = copy.deepcopy(content)
    for section in rendered.get("sections") or []:
        if section.get("type") == "image" and section.get("src") in hosted:
            section["src"] = hosted[section["src"]]
    return build_email_html(rendered)


Uploader = Callable[[str], Awaitable[dict[str, Any]]]


class ContentPipeline:
    """
    Hosts local images and renders email HTML.

    Uploads are cached per path for the lifetime of the pipeline, retried,
    and paced so bursts stay under the image endpoint's rate limit.
    """

    def __init__(
        self,
        uploader: Uploader,
        *,
        pacing_delay: float = 0.4,
        retry: RetryOptions | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._uploader = uploader
        self._pacing_delay = pacing_delay
        self._retry = retry or RetryOptions(max_attempts=2, base_delay=1.0)
        self._sleep = sleep
        self._hosted: dict[str, str] = {}

    @classmethod
    def from_client(cls, client: Any, **kwargs: Any) -> ContentPipeline:
        return cls(client.upload_image_from_file, **kwargs)

    @property
    def hosted(self) -> dict[str, str]:
        return dict(self._hosted)

    @property
    def uploads(self) -> int:
        return len(self._hosted)

    async def upload_asset(self, local_path: str) -> str:
        if local_path in self._hosted:
            return self._hosted[local_path]
        response = await with_retry(
            lambda: self._uploader(local_path),
            f"Upload image {local_path}",
            self._retry,
            sleep=self._sleep,
        )
        url = ((response.get("data") or {}).get("attributes") or {}).get("image_url")
        if not url:
            raise ValueError(f"Image upload for {local_path} returned no image_url")
        self._hosted[local_path] = url
        logger.info("Image hosted: %s -> %s", local_path, url)
        if self._pacing_delay:
            await self._sleep(self._pacing_delay)
        return url

    async def prepare(self, content: dict[str, Any]) -> tuple[str, list[str]]:
        """
        Upload every local image in ``content`` and render the HTML.

        Returns ``(html, warnings)``. A failed upload leaves that image's
        source unchanged and adds a warning.
        """
        warnings: list[str] = []
        local, _ = extract_image_sources(content)
        for path in dict.fromkeys(local):
            try:
                await self.upload_asset(path)
            except Exception as exc:
                logger.warning("Image upload failed for %s: %s", path, exc)
                warnings.append(f'Image upload failed for "{path}": {exc}')
        return render_message_content(content, self._hosted), warnings
