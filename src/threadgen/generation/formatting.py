"""Plain text to HTML rendering for generated emails.

The plain-text body is split into the new content and the quoted or
forwarded part. New content becomes paragraphs, lists and a signature block;
the quoted part becomes a ``quoted-content`` div, a forward becomes a
``forward-header`` div followed by the forwarded body. Every piece of text is
escaped with ``html.escape``.

Functions:
    convert_to_html: Render a full HTML document from a plain-text body.
    insert_inline_image: Place a ``cid:`` image before the quoted content.
"""

from __future__ import annotations

import html
import re

from src.threadgen.generation.subjects import FORWARD_MARKER

_FORWARD_MARKERS = (
    FORWARD_MARKER,
    "-------- Forwarded Message --------",
    "Begin forwarded message:",
)

_SIGNATURE_PHRASES = (
    "best regards",
    "best,",
    "regards,",
    "sincerely,",
    "thanks,",
    "thank you,",
    "cheers,",
    "warm regards",
    "kind regards",
    "all the best",
    "take care",
    "yours truly",
    "respectfully",
    "cordially",
)

_BULLET_PREFIXES = ("- ", "* ", "• ")
_NUMBERED_ITEM = re.compile(r"^(?:\d{1,2}[.)]|\(\d{1,2}\))\s+(.*)$")
_BOLD = re.compile(r"\*([^*]+)\*")
_URL = re.compile(r"(https?://[^\s<]+)")
_CALLOUT = re.compile(
    r"(ACTION REQUIRED:|URGENT:|IMPORTANT:|NOTE:|FYI:|REMINDER:)", re.IGNORECASE
)

_INLINE_IMAGE_ANCHORS = (
    '<div class="quoted-content">',
    '<div class="forward-header">',
    '<div class="signature">',
)

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<style>
body {{ font-family: 'Segoe UI', Calibri, Arial, sans-serif; font-size: 11pt; line-height: 1.5; color: #222222; }}
.email-body {{ max-width: 800px; padding: 20px; }}
.signature {{ margin-top: 20px; padding-top: 10px; border-top: 1px solid #cccccc; color: #444444; font-size: 10pt; }}
.quoted-content {{ margin-top: 20px; padding-left: 10px; border-left: 2px solid #1f4e79; color: #505050; }}
.quoted-header {{ color: #1f4e79; font-size: 10pt; margin-bottom: 10px; }}
.forward-header {{ margin-top: 20px; padding: 10px; background-color: #f5f5f5; border: 1px solid #e0e0e0; font-size: 10pt; }}
.forward-header-label {{ font-weight: bold; color: #505050; }}
p {{ margin: 0 0 10px 0; }}
</style>
</head>
<body>
<div class="email-body">
{content}
</div>
</body>
</html>"""


# =============================================================================
# Splitting
# =============================================================================


def split_email_content(text: str) -> tuple[str, str, bool]:
    """Split a body into (new content, quoted content, is_forward)."""
    lowered = text.lower()
    for marker in _FORWARD_MARKERS:
        index = lowered.find(marker.lower())
        if index > 0:
            return text[:index].rstrip(), text[index:], True

    index = lowered.find("\n\non ")
    if index > 0 and lowered.find(" wrote:", index) > index:
        return text[:index].rstrip(), text[index:], False
    return text, "", False


def _is_signature_start(line: str) -> bool:
    stripped = line.strip()
    if stripped.startswith("--"):
        return True
    lowered = stripped.lower()
    return any(lowered.startswith(phrase) for phrase in _SIGNATURE_PHRASES)


def _format_inline(text: str) -> str:
    encoded = html.escape(text, quote=False)
    encoded = _BOLD.sub(r"<strong>\1</strong>", encoded)
    encoded = _URL.sub(r'<a href="\1">\1</a>', encoded)
    return _CALLOUT.sub(r"<strong>\1</strong>", encoded)


# =============================================================================
# Sections
# =============================================================================


def _format_main_content(content: str) -> str:
    lines = content.replace("\r\n", "\n").split("\n")
    parts: list[str] = []
    signature: list[str] = []
    open_list: str | None = None
    in_signature = False

    def close_list() -> None:
        nonlocal open_list
        if open_list:
            parts.append(f"</{open_list}>")
            open_list = None

    for index, line in enumerate(lines):
        if not in_signature and _is_signature_start(line):
            close_list()
            in_signature = True
        if in_signature:
            escaped = html.escape(line)
            signature.append(
                f'<div class="signature-line">{escaped if escaped.strip() else "&nbsp;"}</div>'
            )
            continue

        stripped = line.strip()
        numbered = _NUMBERED_ITEM.match(stripped)
        if stripped.startswith(_BULLET_PREFIXES):
            if open_list != "ul":
                close_list()
                parts.append("<ul>")
                open_list = "ul"
            parts.append(f"<li>{_format_inline(stripped[2:].strip())}</li>")
        elif numbered:
            if open_list != "ol":
                close_list()
                parts.append("<ol>")
                open_list = "ol"
            parts.append(f"<li>{_format_inline(numbered.group(1))}</li>")
        elif not stripped:
            close_list()
            if 0 < index < len(lines) - 1:
                parts.append("<p>&nbsp;</p>")
        else:
            close_list()
            parts.append(f"<p>{_format_inline(line)}</p>")

    close_list()
    if signature:
        parts.append('<div class="signature">')
        parts.extend(signature)
        parts.append("</div>")
    return "\n".join(parts)


def _format_quoted_content(quoted: str) -> str:
    parts = ['<div class="quoted-content">']
    header_written = False
    for raw in quoted.replace("\r\n", "\n").split("\n"):
        line = raw.strip()
        if not header_written and line.startswith("On ") and " wrote:" in line:
            parts.append(f'<div class="quoted-header">{html.escape(line)}</div>')
            header_written = True
            continue
        text = line.lstrip("> ")
        parts.append(f"<p>{html.escape(text)}</p>" if text else "<p>&nbsp;</p>")
    parts.append("</div>")
    return "\n".join(parts)


def _format_forwarded_content(forwarded: str) -> str:
    header = ['<div class="forward-header">', f"<div>{html.escape(FORWARD_MARKER)}</div>"]
    body: list[str] = []
    in_header = True
    for raw in forwarded.replace("\r\n", "\n").split("\n"):
        line = raw.strip()
        if "forwarded message" in line.lower():
            continue
        if in_header:
            if not line:
                in_header = False
                continue
            label, sep, value = line.partition(":")
            if sep and label:
                header.append(
                    f'<div><span class="forward-header-label">{html.escape(label)}:</span> '
                    f"{html.escape(value.strip())}</div>"
                )
            continue
        body.append(f"<p>{html.escape(line)}</p>" if line else "<p>&nbsp;</p>")
    header.append("</div>")
    return "\n".join([*header, '<div class="quoted-content">', *body, "</div>"])


# =============================================================================
# Public API
# =============================================================================


def convert_to_html(plain_text: str) -> str:
    """Render a plain-text email body as an HTML document."""
    if not plain_text:
        return HTML_TEMPLATE.format(content="<p></p>")

    main, quoted, is_forward = split_email_content(plain_text)
    content = _format_main_content(main)
    if quoted:
        content += "\n" + (
            _format_forwarded_content(quoted) if is_forward else _format_quoted_content(quoted)
        )
    return HTML_TEMPLATE.format(content=content)


def build_inline_image_html(content_id: str, caption: str) -> str:
    alt = html.escape(caption)
    return (
        '<div style="text-align: center; margin: 15px 0;">'
        f'<img src="cid:{content_id}" alt="{alt}" '
        'style="max-width: 600px; height: auto;" /></div>'
    )


def insert_inline_image(body_html: str, content_id: str, caption: str = "") -> str:
    """Insert an inline image before the quoted content, forward or signature.

    Falls back to the end of the body when none of those sections exist.
    """
    image_html = build_inline_image_html(content_id, caption)
    if not body_html:
        return image_html
    for anchor in _INLINE_IMAGE_ANCHORS:
        index = body_html.find(anchor)
        if index > 0:
            return body_html[:index] + image_html + body_html[index:]
    if "</body>" in body_html:
        return body_html.replace("</body>", image_html + "</body>", 1)
    return body_html + image_html
