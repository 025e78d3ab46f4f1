"""Flat key: value front matter extraction and reconstruction"""

import re

from mdsite.errors import ContentFormatError


FRONTMATTER_RE = re.compile(r'\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)', re.DOTALL | re.MULTILINE)
QUOTES = "\"'"


def parse_front_matter(text: str) -> dict[str, str]:
    """Parse `key: value` lines into a flat dict; later duplicates win, quotes are kept."""
    data: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(':')
        if sep and key.strip():
            data[key.strip()] = value.strip()
    return data


def extract(raw: str, required: bool = True) -> tuple[dict[str, str], str]:
    """Return (front_matter, body) split at the closing `---` delimiter.

    Raises ContentFormatError when the delimiter pair is absent, unless
    `required` is False, in which case the whole text is the body.
    """
    m = FRONTMATTER_RE.match(raw)
    if not m:
        if required:
            raise ContentFormatError("Content does not contain a delimited front matter block")
        return {}, raw
    return parse_front_matter(m.group(1)), raw[m.end():]


def render_front_matter(data: dict[str, str], body: str) -> str:
    """Inverse of extract: rebuild a document from a flat map and its body."""
    lines = ["---", *(f"{k}: {v}" for k, v in data.items()), "---"]
    return "\n".join(lines) + "\n" + body


def unquote(value: str) -> str:
    """Strip one matching pair of surrounding quote characters."""
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in QUOTES:
        return value[1:-1]
    return value
