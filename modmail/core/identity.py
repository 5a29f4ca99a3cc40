"""Correspondent identity marker embedded in a thread's opening message.

The opening message of every modmail thread carries the correspondent's id
twice: as a user mention and as a literal ``(ID: <digits>)`` marker. Recovery
reads it back after a restart, so the rendering and the parsing below must
stay textually consistent.
"""

from __future__ import annotations

import re
from typing import Iterable

_USER_MENTION_RE = re.compile(r"<@!?(\d+)>")
_ID_MARKER_RE = re.compile(r"\(ID: (\d+)\)")


def format_id_marker(correspondent_id: int) -> str:
    """Render the literal identity marker for a correspondent."""
    return f"(ID: {correspondent_id})"


def build_opening_message(*, staff_role_id: int, correspondent_id: int) -> str:
    """Build the opening message for a new modmail thread.

    Mentions the staff role and the correspondent and embeds the identity
    marker recovery parses back out.
    """
    return (
        f"<@&{staff_role_id}> New modmail from <@{correspondent_id}> "
        f"{format_id_marker(correspondent_id)}"
    )


def extract_mention_id(text: str) -> int | None:
    """Return the first user-mention id among the whitespace-delimited tokens.

    Role (``<@&id>``) and channel (``<#id>``) mentions are not users and are skipped.
    """
    for token in text.split():
        match = _USER_MENTION_RE.match(token)
        if match:
            return int(match.group(1))
    return None


def extract_marker_id(text: str) -> int | None:
    """Return the id from a literal ``(ID: <digits>)`` marker, if present."""
    match = _ID_MARKER_RE.search(text)
    if match:
        return int(match.group(1))
    return None


def extract_correspondent_id(text: str, mention_ids: Iterable[int] = ()) -> int | None:
    """Recover the correspondent id from a thread's opening message.

    Args:
        text: Opening message content
        mention_ids: User ids the platform resolved as mentions, if any

    Returns:
        The correspondent id, or None when the message carries no identity
    """
    for mention_id in mention_ids:
        return int(mention_id)
    mention_id = extract_mention_id(text)
    if mention_id is not None:
        return mention_id
    return extract_marker_id(text)
