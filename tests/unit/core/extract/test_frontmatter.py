"""Unit tests for core/extract/frontmatter.py"""

import pytest

from mdsite.core.extract.frontmatter import extract, parse_front_matter, render_front_matter, unquote
from mdsite.errors import ContentFormatError


def test_extract_splits_metadata_and_body():
    fm, body = extract('---\ntitle: "Hello"\nauthor: Ann\n---\n# Hi\n')
    assert fm == {"title": '"Hello"', "author": "Ann"}
    assert body == "# Hi\n"


def test_extract_later_duplicate_wins():
    fm, _ = extract("---\ntitle: One\ntitle: Two\n---\n")
    assert fm == {"title": "Two"}


def test_extract_value_keeps_colons():
    """Only the first ':' separates key from value."""
    fm, _ = extract('---\nurl: http://example.com/a\nlastmodified: "2024-01-01 10:00:00"\n---\n')
    assert fm["url"] == "http://example.com/a"
    assert fm["lastmodified"] == '"2024-01-01 10:00:00"'


def test_extract_skips_lines_without_separator():
    fm, _ = extract("---\njust text\ntitle: T\n---\nbody")
    assert fm == {"title": "T"}


def test_extract_handles_crlf():
    fm, body = extract("---\r\ntitle: x\r\n---\r\nbody")
    assert fm == {"title": "x"}
    assert body == "body"


def test_extract_empty_block():
    fm, body = extract("---\n---\nbody")
    assert fm == {}
    assert body == "body"


@pytest.mark.parametrize("raw", [
    "# No front matter\n",
    "---\ntitle: never closed\n# Body\n",
    "\n---\ntitle: late start\n---\n",
])
def test_extract_missing_delimiters_raises(raw):
    with pytest.raises(ContentFormatError):
        extract(raw)


def test_extract_optional_returns_whole_text():
    raw = '{# route "/about" #}\n<p>Hi</p>\n'
    assert extract(raw, required=False) == ({}, raw)


@pytest.mark.parametrize("data", [
    {},
    {"title": '"Hello"'},
    {"title": "Hi", "navorder": "2", "lastmodified": '"2024-03-01 09:05:07"'},
])
def test_render_front_matter_reextracts_same_map(data):
    fm, body = extract(render_front_matter(data, "# Body\n"))
    assert fm == data
    assert body == "# Body\n"


def test_parse_front_matter_strips_keys_and_values():
    assert parse_front_matter("  title :  Spaced  \n") == {"title": "Spaced"}


@pytest.mark.parametrize("value,expected", [
    ('"quoted"', "quoted"),
    ("'single'", "single"),
    ("bare", "bare"),
    ('  "padded"  ', "padded"),
    ('""double""', '"double"'),
    ('"unbalanced', '"unbalanced'),
    ("\"mixed'", "\"mixed'"),
    ('"', '"'),
])
def test_unquote(value, expected):
    assert unquote(value) == expected
