"""Tests for plain text to HTML rendering.

Tests cover:
- Escaping and inline formatting (bold, links, callouts)
- Bulleted and numbered lists
- Signature blocks
- Quoted replies and forwarded content
- Inline image placement
"""

from __future__ import annotations

import uuid
from datetime import datetime

from src.threadgen.domain.models import EmailMessage
from src.threadgen.generation.formatting import (
    convert_to_html,
    insert_inline_image,
    split_email_content,
)
from src.threadgen.generation.subjects import format_forwarded_content, format_quoted_reply


def committed_email(characters, body: str = "Original text") -> EmailMessage:
    alice, bob, _ = characters
    return EmailMessage(
        id=uuid.uuid4(),
        thread_id=uuid.uuid4(),
        sender=alice,
        to=[bob],
        subject="Budget",
        body_plain=body,
        sent_date=datetime(2026, 1, 5, 9, 5),
    )


class TestSplitEmailContent:
    """Tests for split_email_content()."""

    def test_plain(self) -> None:
        assert split_email_content("Hello there") == ("Hello there", "", False)

    def test_reply(self, characters) -> None:
        body = "Sounds good." + format_quoted_reply(committed_email(characters))
        main, quoted, is_forward = split_email_content(body)
        assert main == "Sounds good."
        assert "wrote:" in quoted
        assert is_forward is False

    def test_forward(self, characters) -> None:
        body = "FYI below." + format_forwarded_content(committed_email(characters))
        main, _, is_forward = split_email_content(body)
        assert main == "FYI below."
        assert is_forward is True


class TestConvertToHtml:
    """Tests for convert_to_html()."""

    def test_empty(self) -> None:
        assert "<p></p>" in convert_to_html("")

    def test_escapes_text(self) -> None:
        html = convert_to_html("Hi Bob,\n\nSee <b>x</b> & y")
        assert "&lt;b&gt;x&lt;/b&gt; &amp; y" in html
        assert "<b>x</b>" not in html

    def test_inline_formatting(self) -> None:
        html = convert_to_html(
            "ACTION REQUIRED: sign the *final* copy at https://intranet.local/doc"
        )
        assert "<strong>ACTION REQUIRED:</strong>" in html
        assert "<strong>final</strong>" in html
        assert '<a href="https://intranet.local/doc">https://intranet.local/doc</a>' in html

    def test_lists(self) -> None:
        html = convert_to_html("Items:\n- one\n- two\n1. first\n2) second")
        assert "<ul>\n<li>one</li>\n<li>two</li>\n</ul>" in html
        assert "<ol>\n<li>first</li>\n<li>second</li>\n</ol>" in html

    def test_signature_block(self) -> None:
        html = convert_to_html("Hi Bob,\n\nDone.\n\nThanks,\nAlice Nguyen")
        assert '<div class="signature">' in html
        assert '<div class="signature-line">Alice Nguyen</div>' in html

    def test_quoted_reply(self, characters) -> None:
        body = "Sounds good." + format_quoted_reply(committed_email(characters))
        html = convert_to_html(body)
        assert '<div class="quoted-content">' in html
        assert '<div class="quoted-header">On Mon, Jan 5, 2026 at 9:05 AM' in html
        assert "<p>Original text</p>" in html

    def test_forward(self, characters) -> None:
        body = "FYI." + format_forwarded_content(committed_email(characters, "Numbers"))
        html = convert_to_html(body)
        assert '<div class="forward-header">' in html
        assert '<span class="forward-header-label">Subject:</span> Budget' in html
        assert "<p>Numbers</p>" in html


class TestInsertInlineImage:
    """Tests for insert_inline_image()."""

    def test_before_quoted_content(self, characters) -> None:
        body = "See the chart." + format_quoted_reply(committed_email(characters))
        html = insert_inline_image(convert_to_html(body), "img_abc", "Chart")

        image_index = html.index('src="cid:img_abc"')
        assert image_index < html.index('<div class="quoted-content">')
        assert 'alt="Chart"' in html

    def test_before_body_close(self) -> None:
        html = insert_inline_image(convert_to_html("Chart below"), "img_1")
        assert html.index("cid:img_1") < html.index("</body>")

    def test_empty_body(self) -> None:
        assert insert_inline_image("", "img_2").startswith("<div")
