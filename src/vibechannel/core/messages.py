"""
Writer-side helpers for the message file protocol.

A message is a Markdown file named ``{YYYYMMDDTHHMMSS}-{sender}-{id}.md``
(timestamp in UTC) whose body is a YAML header block followed by a blank line
and free text. These helpers only produce files; reading and validating
messages is left to consumers.
"""

from __future__ import annotations

import re
import secrets
import string
from datetime import datetime, timezone

import frontmatter

FILENAME_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S"
MESSAGE_ID_LENGTH = 6
MESSAGE_ID_ALPHABET = string.ascii_lowercase + string.digits

MESSAGE_FILENAME_RE = re.compile(r"^(\d{8}T\d{6})-([a-z0-9]+)-([a-z0-9]{6})\.md$")


def normalize_sender(name: str) -> str:
    """
    Reduce a display name to the lowercase alphanumeric sender form.

    Example:
        >>> normalize_sender("Lucas O'Brien")
        'lucasobrien'

    Raises:
        ValueError: If nothing usable is left.
    """
    sender = "".join(ch for ch in name.lower() if ch in MESSAGE_ID_ALPHABET)
    if not sender:
        raise ValueError(f"Sender {name!r} has no alphanumeric characters")
    return sender


def generate_message_id() -> str:
    """Random 6-character ``a-z0-9`` id."""
    return "".join(secrets.choice(MESSAGE_ID_ALPHABET) for _ in range(MESSAGE_ID_LENGTH))


def _utc(when: datetime | None) -> datetime:
    if when is None:
        return datetime.now(timezone.utc)
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def message_filename(
    sender: str,
    when: datetime | None = None,
    message_id: str | None = None,
) -> str:
    """
    Build a message filename.

    Example:
        >>> message_filename("lucas", datetime(2025, 1, 15, 10, 30, 45), "a3f8x2")
        '20250115T103045-lucas-a3f8x2.md'
    """
    stamp = _utc(when).strftime(FILENAME_TIMESTAMP_FORMAT)
    return f"{stamp}-{normalize_sender(sender)}-{message_id or generate_message_id()}.md"


def is_message_filename(filename: str) -> bool:
    return MESSAGE_FILENAME_RE.match(filename) is not None


def compose_message(
    sender: str,
    text: str,
    *,
    when: datetime | None = None,
    reply_to: str | None = None,
    tags: list[str] | None = None,
    attachments: list[str] | None = None,
) -> str:
    """
    Render a message file body: header block, blank line, text.

    Returns:
        The file content, ending with a newline.
    """
    post = frontmatter.Post(text.strip())
    post["from"] = normalize_sender(sender)
    post["date"] = _utc(when).strftime("%Y-%m-%dT%H:%M:%SZ")
    if reply_to:
        post["reply_to"] = reply_to
    if tags:
        post["tags"] = list(tags)
    if attachments:
        post["attachments"] = list(attachments)
    return frontmatter.dumps(post, sort_keys=False) + "\n"
