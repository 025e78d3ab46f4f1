"""Per-document build steps and batch orchestration"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional, Union

from mdsite.core.compile import compile_template, normalize, resolve_route, resolve_title
from mdsite.core.context import BuildContext
from mdsite.core.execute import execute, render_params
from mdsite.core.export import PathLocks, output_path_for, output_state, write_record
from mdsite.core.extract.blocks import scan
from mdsite.core.extract.frontmatter import unquote
from mdsite.core.gate import declared_last_modified, needs_rebuild, needs_stamp, write_stamp
from mdsite.core.library import (
    collect_nav_links,
    collect_post_links,
    prerender_sections,
    render_layout,
    substitute_placeholders,
)
from mdsite.core.models import (
    BuildFailure,
    BuildResult,
    LinkData,
    PageMetadata,
    PostMetadata,
    SourceDocument,
    TemplateSource,
)
from mdsite.core.parse import MD_EXTENSIONS, TEMPLATE_EXTENSIONS, discover_files, load_source, render_markdown
from mdsite.core.utils.slug import pascal_to_title, upper_first
from mdsite.errors import CompilationError, ContentFormatError, MdsiteError


logger = logging.getLogger(__name__)

POST_NAME_RE = re.compile(r'^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})-(?P<slug>.+)$')
SITE_TITLE_TOKEN = "{{ site_title }}"

Record = Union[PageMetadata, PostMetadata]


@dataclass
class BuiltDocument:
    """A record plus what the write phase needs to stamp its source."""
    record:   Record
    source:   SourceDocument
    template: TemplateSource
    declared: Optional[datetime]


# --- front matter fields ---

def _field(front_matter: dict[str, str], key: str, default: str = "") -> str:
    return unquote(front_matter.get(key, "")) or default


def layout_name(front_matter: dict[str, str], default: str) -> str:
    """'post' -> 'PostLayout'."""
    return f"{upper_first(_field(front_matter, 'layout', default))}Layout"


def nav_order(front_matter: dict[str, str]) -> int:
    try:
        return int(_field(front_matter, "navorder", "0"))
    except ValueError:
        return 0


# --- url derivation ---

def parse_post_name(path: Path) -> tuple[date, str]:
    """Split 'yyyy-mm-dd-slug.md' into (publish date, slug)."""
    m = POST_NAME_RE.match(path.stem)
    if not m:
        raise ContentFormatError(f"Post file name {path.name} does not match yyyy-mm-dd-slug.md")
    try:
        published = date(int(m.group("year")), int(m.group("month")), int(m.group("day")))
    except ValueError as e:
        raise ContentFormatError(f"Post file name {path.name} has an invalid date: {e}") from e
    return published, m.group("slug")


def post_url(published: date, slug: str) -> str:
    return f"/post/{published.year}/{published.month}/{published.day}/{slug}"


def page_url(pages_root: Path, path: Path) -> str:
    """'index.md' -> '/', 'about.md' -> '/about', 'docs/index.md' -> '/docs/'."""
    try:
        rel = path.relative_to(pages_root).with_suffix("")
    except ValueError:
        rel = Path(path.stem)
    if rel.name == "index":
        parent = rel.parent.as_posix()
        return "/" if parent == "." else f"/{parent}/"
    return f"/{rel.as_posix()}"


def template_identity(ctx: BuildContext, doc: SourceDocument) -> tuple[str, str]:
    """(url, title) for a page template from its route directive and title marker."""
    url = resolve_route(doc.body)
    title = (
        resolve_title(doc.body)
        or _field(doc.front_matter, "title")
        or pascal_to_title(doc.path.stem)
    )
    return url, title.replace(SITE_TITLE_TOKEN, ctx.settings.site_title)


# --- per-document steps ---

def _gate(
    doc: SourceDocument,
    output_path: Path,
    declared: Optional[datetime],
    published: Optional[date] = None,
    force: bool = False,
    ) -> bool:
    if force:
        return True
    output_last_write, exists = output_state(output_path)
    return needs_rebuild(doc.last_write, output_last_write, exists, declared, published)


def _last_modified(doc: SourceDocument, declared: Optional[datetime]) -> datetime:
    return max(declared, doc.last_write) if declared else doc.last_write


def build_post(ctx: BuildContext, path: Path, force: bool = False) -> BuiltDocument:
    """Read, scan, and render one markdown post."""
    published, slug = parse_post_name(path)
    doc = load_source(path)
    fm = doc.front_matter
    declared = declared_last_modified(fm)
    url = post_url(published, slug)
    output_path = output_path_for(ctx.output_root, url)
    template = scan(doc.body_lines)

    record = PostMetadata(
        title=_field(fm, "title", "Untitled"),
        subtitle=_field(fm, "subtitle"),
        url_path=url,
        published=published,
        author=_field(fm, "author"),
        body_html=render_markdown(ctx.parser, template.lines),
        component_sections=template.sections,
        scripts=template.scripts,
        layout=layout_name(fm, "post"),
        description=_field(fm, "description"),
        output_path=output_path,
        needs_update=_gate(doc, output_path, declared, published, force),
        source_path=path,
        last_modified=_last_modified(doc, declared),
    )
    return BuiltDocument(record=record, source=doc, template=template, declared=declared)


def build_markdown_page(ctx: BuildContext, path: Path, force: bool = False) -> BuiltDocument:
    """Read, scan, and render one markdown page."""
    doc = load_source(path)
    fm = doc.front_matter
    declared = declared_last_modified(fm)
    url = page_url(ctx.pages_root, path)
    output_path = output_path_for(ctx.output_root, url)
    template = scan(doc.body_lines)

    record = PageMetadata(
        title=_field(fm, "title", "Untitled"),
        subtitle=_field(fm, "subtitle"),
        url_path=url,
        body_html=render_markdown(ctx.parser, template.lines),
        component_sections=template.sections,
        scripts=template.scripts,
        layout=layout_name(fm, "page"),
        description=_field(fm, "description"),
        output_path=output_path,
        needs_update=_gate(doc, output_path, declared, force=force),
        source_path=path,
        last_modified=_last_modified(doc, declared),
        nav_order=nav_order(fm),
    )
    return BuiltDocument(record=record, source=doc, template=template, declared=declared)


async def build_template_page(
    ctx: BuildContext,
    path: Path,
    nav_links: list[LinkData],
    force: bool = False,
    ) -> BuiltDocument:
    """Scan, compile, and render one page template."""
    doc = await asyncio.to_thread(load_source, path, False)
    fm = doc.front_matter
    declared = declared_last_modified(fm)
    url, title = template_identity(ctx, doc)
    output_path = output_path_for(ctx.output_root, url)
    template = scan(doc.body_lines)

    unit = compile_template(ctx.env, path.stem, normalize(template.text))
    params = render_params(ctx, unit, title, url, nav_links)
    body_html = await execute(unit, params, ctx.settings.render_timeout)

    record = PageMetadata(
        title=title,
        subtitle=_field(fm, "subtitle"),
        url_path=url,
        body_html=body_html,
        component_sections=template.sections,
        scripts=template.scripts,
        layout=layout_name(fm, "page"),
        description=_field(fm, "description"),
        output_path=output_path,
        needs_update=_gate(doc, output_path, declared, force=force),
        source_path=path,
        last_modified=_last_modified(doc, declared),
        nav_order=nav_order(fm),
    )
    return BuiltDocument(record=record, source=doc, template=template, declared=declared)


async def finalize(ctx: BuildContext, built: BuiltDocument) -> BuiltDocument:
    """Substitute pre-rendered registry components into their placeholders."""
    fragments = await prerender_sections(ctx.components, built.template.invocations)
    if fragments:
        html = substitute_placeholders(built.record.body_html, fragments)
        built.record = built.record.model_copy(update={"body_html": html})
    return built


def read_nav_entries(ctx: BuildContext, page_paths: list[Path]) -> list[LinkData]:
    """Navigation links from page front matter; pages that fail to load are left out."""
    entries = []
    for path in page_paths:
        try:
            if path.suffix in TEMPLATE_EXTENSIONS:
                doc = load_source(path, require_front_matter=False)
                url, title = template_identity(ctx, doc)
            else:
                doc = load_source(path)
                url, title = page_url(ctx.pages_root, path), _field(doc.front_matter, "title", "Untitled")
        except MdsiteError as e:
            logger.debug("No nav entry for %s: %s", path, e)
            continue
        link = LinkData(title=title, subtitle=_field(doc.front_matter, "subtitle"), url=url)
        entries.append((nav_order(doc.front_matter), link))
    return collect_nav_links(entries)


def _should_stamp(built: BuiltDocument) -> bool:
    return built.source.has_front_matter and needs_stamp(built.source.last_write, built.declared)


def _record_failure(result: BuildResult, path: Path, error: Exception) -> None:
    """Log a per-document failure and add it to the batch failure log."""
    if isinstance(error, CompilationError):
        logger.error("Skipping %s: %s", path, error)
        for d in error.diagnostics:
            logger.error("  %s", d)
    elif isinstance(error, MdsiteError):
        logger.error("Skipping %s: %s", path, error)
    else:
        logger.exception("Unexpected error building %s", path)
    result.failures.append(BuildFailure(
        path=path,
        error=type(error).__name__,
        message=str(error),
        diagnostics=getattr(error, "diagnostics", []),
    ))


# --- batch ---

async def run_build(
    ctx: BuildContext,
    dry_run: bool = False,
    force: bool = False,
    stop: Optional[asyncio.Event] = None,
    ) -> BuildResult:
    """Build every post and page under the configured roots.

    Documents are processed concurrently up to `max_workers`. A failing
    document is logged, recorded in `BuildResult.failures`, and left out of the
    records; the rest of the batch continues. Setting `stop` keeps documents
    that have not started yet from being launched. With `dry_run` nothing is
    written and no source is stamped.
    """
    result = BuildResult()
    post_paths = discover_files(ctx.posts_root)
    page_paths = discover_files(ctx.pages_root, MD_EXTENSIONS | TEMPLATE_EXTENSIONS)
    logger.info("Building %d post(s) and %d page(s)", len(post_paths), len(page_paths))

    nav_links = await asyncio.to_thread(read_nav_entries, ctx, page_paths)
    semaphore = asyncio.Semaphore(ctx.settings.max_workers)

    async def build_one(path: Path, is_post: bool) -> Optional[BuiltDocument]:
        async with semaphore:
            if stop is not None and stop.is_set():
                logger.info("Stop requested, skipping %s", path)
                result.skipped.append(path)
                return None
            try:
                if is_post:
                    built = await asyncio.to_thread(build_post, ctx, path, force)
                elif path.suffix in TEMPLATE_EXTENSIONS:
                    built = await build_template_page(ctx, path, nav_links, force)
                else:
                    built = await asyncio.to_thread(build_markdown_page, ctx, path, force)
                return await finalize(ctx, built)
            except Exception as e:
                _record_failure(result, path, e)
                return None

    jobs = [(p, True) for p in post_paths] + [(p, False) for p in page_paths]
    built_docs = [b for b in await asyncio.gather(*(build_one(p, post) for p, post in jobs)) if b]
    post_links = collect_post_links(b.record for b in built_docs if isinstance(b.record, PostMetadata))

    locks = PathLocks()
    site = ctx.site_params()

    async def write_one(built: BuiltDocument) -> bool:
        record = built.record
        if dry_run or not record.needs_update:
            return True
        async with semaphore:
            try:
                html = await render_layout(ctx.env, record, site, nav_links, post_links)
                if _should_stamp(built):
                    async with locks(built.source.path):
                        await asyncio.to_thread(write_stamp, built.source, datetime.now(timezone.utc))
                    result.stamped.append(built.source.path)
                result.written.append(await write_record(record, html, locks))
                return True
            except Exception as e:
                _record_failure(result, record.source_path, e)
                return False

    kept = await asyncio.gather(*(write_one(b) for b in built_docs))
    for built, ok in zip(built_docs, kept):
        if not ok:
            continue
        if isinstance(built.record, PostMetadata):
            result.posts.append(built.record)
        else:
            result.pages.append(built.record)

    logger.info(
        "Build finished: %d written, %d stamped, %d failed, %d skipped",
        len(result.written), len(result.stamped), len(result.failures), len(result.skipped),
    )
    return result
