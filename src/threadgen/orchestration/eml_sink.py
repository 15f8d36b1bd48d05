"""Message-file sink that writes RFC 5322 ``.eml`` files.

Each thread gets its own folder under the output folder (or, when organizing
by sender, each message goes under its sender's folder). Messages carry the
plain and HTML bodies as alternatives, inline images as related parts of the
HTML body, and every other rendered attachment as a regular attachment.

Writing the same thread twice overwrites the same files.
"""

from __future__ import annotations

import asyncio
import logging
from email.message import EmailMessage as MimeMessage
from email.policy import SMTP
from email.utils import format_datetime, formataddr
from pathlib import Path

from src.threadgen.domain.models import Attachment, Character, EmailMessage, EmailThread
from src.threadgen.orchestration.file_names import (
    build_eml_file_name,
    build_thread_folder_name,
    sanitize_for_file_name,
)

logger = logging.getLogger(__name__)


def _address(character: Character) -> str:
    return formataddr((character.full_name, character.email))


def _split_content_type(content_type: str) -> tuple[str, str]:
    maintype, _, subtype = content_type.partition("/")
    if not subtype:
        return "application", "octet-stream"
    return maintype, subtype


def build_mime_message(email: EmailMessage) -> MimeMessage:
    """Build the MIME message for a committed email."""
    message = MimeMessage()
    if email.sender is not None:
        message["From"] = _address(email.sender)
    if email.to:
        message["To"] = ", ".join(_address(c) for c in email.to)
    if email.cc:
        message["Cc"] = ", ".join(_address(c) for c in email.cc)
    message["Subject"] = email.subject
    if email.sent_date is not None:
        message["Date"] = format_datetime(email.sent_date)
    if email.message_id:
        message["Message-ID"] = email.message_id
    if email.in_reply_to:
        message["In-Reply-To"] = email.in_reply_to
    if email.references:
        message["References"] = " ".join(email.references)

    message.set_content(email.body_plain)
    inline = [a for a in email.attachments if a.is_inline and a.content_id]
    regular = [a for a in email.attachments if a not in inline]

    if email.body_html:
        message.add_alternative(email.body_html, subtype="html")
        html_part = message.get_payload()[-1]
        for attachment in inline:
            maintype, subtype = _split_content_type(attachment.content_type)
            html_part.add_related(
                attachment.content,
                maintype=maintype,
                subtype=subtype,
                cid=f"<{attachment.content_id}>",
                filename=attachment.file_name,
                disposition="inline",
            )
    else:
        regular.extend(inline)

    for attachment in regular:
        _add_attachment(message, attachment)
    return message


def _add_attachment(message: MimeMessage, attachment: Attachment) -> None:
    maintype, subtype = _split_content_type(attachment.content_type)
    message.add_attachment(
        attachment.content,
        maintype=maintype,
        subtype=subtype,
        filename=attachment.file_name,
    )


class EmlFileSink:
    """Writes each message of a thread as an ``.eml`` file.

    Attributes:
        organize_by_sender: Group files under one folder per sender address
            instead of one folder per thread.
    """

    def __init__(self, organize_by_sender: bool = False) -> None:
        self.organize_by_sender = organize_by_sender

    async def save_thread(self, thread: EmailThread, output_folder: str) -> None:
        paths = await asyncio.to_thread(self.write_thread, thread, Path(output_folder))
        logger.info(f"Wrote {len(paths)} EML files for thread '{thread.display_subject}'")

    def write_thread(self, thread: EmailThread, root: Path) -> list[Path]:
        """Write every message of ``thread`` under ``root``.

        Returns:
            The written paths, in message order.
        """
        paths: list[Path] = []
        for email in sorted(thread.messages, key=lambda m: m.sequence_index):
            path = self.path_for(thread, email, root)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(build_mime_message(email).as_bytes(policy=SMTP))
            paths.append(path)
        return paths

    def path_for(self, thread: EmailThread, email: EmailMessage, root: Path) -> Path:
        if self.organize_by_sender:
            sender = email.sender.email if email.sender is not None else None
            folder = root / sanitize_for_file_name(sender) / build_thread_folder_name(thread)
        else:
            folder = root / build_thread_folder_name(thread)
        return folder / build_eml_file_name(email)
