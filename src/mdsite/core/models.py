"""Data models for the scan, compile, and render pipeline"""

from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class SourceDocument:
    """One content file as read at the start of a build pass; never mutated."""
    path:         Path
    raw:          str               # full file content (includes front matter)
    front_matter: dict[str, str]    # values keep their quotes
    body:         str               # content after the closing delimiter
    last_write:   datetime          # UTC mtime of path

    @property
    def body_lines(self) -> list[str]:
        return self.body.splitlines()

    @property
    def has_front_matter(self) -> bool:
        return self.body != self.raw


# --- scanner output ---

@dataclass(frozen=True)
class PlainLine:
    text: str


@dataclass(frozen=True)
class SampleCode:
    key:      str
    language: str
    content:  str


@dataclass(frozen=True)
class ScriptBlock:
    content: str


@dataclass(frozen=True)
class ComponentInvocation:
    key:    str
    markup: str
    name:   Optional[str] = None    # tag name for tag-style invocations, None for fences


ParsedBlock = Union[PlainLine, SampleCode, ScriptBlock, ComponentInvocation]


@dataclass(frozen=True)
class TemplateSource:
    """Normalized content stream plus everything the scanner lifted out of it."""
    lines:    list[str]
    sections: dict[str, str] = field(default_factory=dict)
    samples:  dict[str, SampleCode] = field(default_factory=dict)
    scripts:  list[str] = field(default_factory=list)
    invocations: dict[str, ComponentInvocation] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


# --- compiler diagnostics ---

class Diagnostic(BaseModel):
    """A single compiler message; `code` identifies the check that produced it."""
    code:     str
    severity: Literal["error", "warning"]
    message:  str
    lineno:   Optional[int] = None

    def __str__(self) -> str:
        where = f" (line {self.lineno})" if self.lineno else ""
        return f"{self.code} {self.severity}{where}: {self.message}"


# --- records handed to the layout ---

class LinkData(BaseModel):
    title:     str
    subtitle:  str = ""
    url:       str
    published: Optional[date] = None
    author:    str = ""


class PageMetadata(BaseModel):
    title:              str
    subtitle:           str = ""
    url_path:           str
    body_html:          str
    component_sections: dict[str, str] = {}
    scripts:            list[str] = []
    layout:             str = "PageLayout"
    description:        str = ""
    output_path:        Path
    needs_update:       bool = True
    source_path:        Path
    last_modified:      Optional[datetime] = None
    nav_order:          int = 0


class PostMetadata(BaseModel):
    title:              str
    subtitle:           str = ""
    url_path:           str
    published:          date
    author:             str = ""
    body_html:          str
    component_sections: dict[str, str] = {}
    scripts:            list[str] = []
    layout:             str = "PostLayout"
    description:        str = ""
    output_path:        Path
    needs_update:       bool = True
    source_path:        Path
    last_modified:      Optional[datetime] = None


class BuildFailure(BaseModel):
    path:        Path
    error:       str                # exception class name
    message:     str
    diagnostics: list[Diagnostic] = []


class BuildResult(BaseModel):
    """Batch outcome: every record produced plus the failure log."""
    posts:    list[PostMetadata] = []
    pages:    list[PageMetadata] = []
    written:  list[Path] = []
    stamped:  list[Path] = []
    skipped:  list[Path] = []
    failures: list[BuildFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures
