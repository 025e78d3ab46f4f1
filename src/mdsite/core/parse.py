"""File discovery, source loading, and markdown-it rendering"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from markdown_it import MarkdownIt
from mdit_py_plugins.deflist import deflist_plugin
from mdit_py_plugins.footnote import footnote_plugin
from mdit_py_plugins.tasklists import tasklists_plugin

from mdsite.core.extract.frontmatter import extract
from mdsite.core.models import SourceDocument
from mdsite.errors import FileSystemError


MD_EXTENSIONS = {'.md'}
TEMPLATE_EXTENSIONS = {'.jinja'}


def make_parser(preset: str = 'gfm-like') -> MarkdownIt:
    """Build a MarkdownIt instance for the given preset with footnotes, deflists, and task lists."""
    return (
        MarkdownIt(preset, options_update={"linkify": False, "html": True})
        .use(footnote_plugin)
        .use(deflist_plugin)
        .use(tasklists_plugin)
    )


def render_markdown(parser: MarkdownIt, lines: Iterable[str]) -> str:
    """Render the scanner's plain-content stream; placeholders pass through as HTML blocks."""
    return parser.render("\n".join(lines))


def discover_files(path: Path, extensions: set[str] = MD_EXTENSIONS) -> list[Path]:
    """Return sorted files with the given suffixes under path, or [path] if a single file."""
    if path.is_file():
        return [path] if path.suffix in extensions else []
    if not path.is_dir():
        return []
    return sorted(p for p in path.rglob('*') if p.is_file() and p.suffix in extensions)


def file_last_write(path: Path) -> datetime:
    """UTC modification time of path."""
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)


def load_source(path: Path, require_front_matter: bool = True) -> SourceDocument:
    """Read path once and split it into front matter and body."""
    try:
        raw = path.read_text(encoding='utf-8')
        last_write = file_last_write(path)
    except OSError as e:
        raise FileSystemError(f"Failed to read {path}: {e}") from e
    front_matter, body = extract(raw, required=require_front_matter)
    return SourceDocument(
        path=path,
        raw=raw,
        front_matter=front_matter,
        body=body,
        last_write=last_write,
    )
