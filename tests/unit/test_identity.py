"""Unit tests for the correspondent identity marker."""

import pytest

from modmail.core.identity import (
    build_opening_message,
    extract_correspondent_id,
    extract_marker_id,
    extract_mention_id,
    format_id_marker,
)

pytestmark = pytest.mark.unit


def test_opening_message_mentions_role_and_user_and_embeds_marker():
    text = build_opening_message(staff_role_id=777, correspondent_id=123456789)

    assert text.startswith("<@&777> ")
    assert "<@123456789>" in text
    assert "(ID: 123456789)" in text


def test_opening_message_identity_is_recoverable():
    text = build_opening_message(staff_role_id=777, correspondent_id=42)

    assert extract_correspondent_id(text) == 42
    assert extract_marker_id(text) == 42


def test_extract_mention_skips_role_mentions():
    assert extract_mention_id("<@&777> New modmail from <@555>") == 555


def test_extract_mention_accepts_nickname_form_and_trailing_punctuation():
    assert extract_mention_id("hello <@!321>: hi") == 321


def test_extract_marker_without_mention():
    assert extract_correspondent_id("New modmail from someone (ID: 123456789)") == 123456789


def test_extract_returns_none_without_identity():
    assert extract_correspondent_id("Welcome to the support forum! Please read the rules.") is None
    assert extract_correspondent_id("") is None


def test_platform_mention_ids_take_precedence():
    assert extract_correspondent_id("(ID: 1)", mention_ids=[2, 3]) == 2


def test_marker_format_is_stable():
    assert format_id_marker(987) == "(ID: 987)"
