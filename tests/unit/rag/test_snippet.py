"""Tests for create_snippet."""

from __future__ import annotations

import pytest

from recall.rag.snippet import create_snippet


def test_short_text_unchanged():
    assert create_snippet("short text", 200) == "short text"
    assert create_snippet("x" * 10, 10) == "x" * 10


def test_cuts_at_last_space_in_second_half():
    assert create_snippet("hello world foo bar", 12) == "hello world..."


def test_cuts_mid_word_when_space_is_too_early():
    assert create_snippet("ab cdefghijklmnop", 10) == "ab cdefghi..."
    assert create_snippet("abcdefghijklmnop", 10) == "abcdefghij..."


@pytest.mark.parametrize("max_length", [5, 17, 40, 99])
def test_length_bound(max_length):
    text = "lorem ipsum dolor sit amet " * 10
    snippet = create_snippet(text, max_length)
    assert len(snippet) <= max_length + 3
    assert snippet.endswith("...")
