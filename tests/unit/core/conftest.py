"""Shared fixtures for core unit tests"""

import pytest

from mdsite.core.parse import make_parser


SAMPLE_MD = """\
# Heading 1

A paragraph with **bold** text.

| a | b |
|---|---|
| 1 | 2 |

- [x] done
- [ ] todo

Footnote here[^1].

[^1]: The note.
"""


@pytest.fixture(name="parser")
def parser_fixture():
    return make_parser("gfm-like")


@pytest.fixture(name="sample_lines")
def sample_lines_fixture():
    return SAMPLE_MD.splitlines()
