"""CLI command implementations"""

import asyncio
import logging
import signal
from typing import Annotated, Optional

import typer

from mdsite.config import Settings, load_config
from mdsite.core.context import BuildContext
from mdsite.core.models import BuildResult
from mdsite.core.pipeline import run_build


PostsOpt = Annotated[Optional[str], typer.Option("--posts-dir", help="Posts content directory")]
PagesOpt = Annotated[Optional[str], typer.Option("--pages-dir", help="Pages content directory")]
OutOpt = Annotated[Optional[str], typer.Option("--out-dir", help="Output web root")]
VerboseOpt = Annotated[bool, typer.Option("--verbose", "-v", help="Log debug output")]


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        return load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


async def _run(ctx: BuildContext, dry_run: bool, force: bool) -> BuildResult:
    """Run the build; the first Ctrl-C stops new documents from starting."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop.set)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False
    try:
        return await run_build(ctx, dry_run=dry_run, force=force, stop=stop)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def _echo_failures(result: BuildResult) -> None:
    for failure in result.failures:
        typer.echo(f"  failed: {failure.path} ({failure.error}) {failure.message}", err=True)


def build_cmd(
    posts: PostsOpt = None,
    pages: PagesOpt = None,
    out: OutOpt = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Render without writing output or stamping sources")] = False,
    force: Annotated[bool, typer.Option("--force", help="Rebuild every document regardless of timestamps")] = False,
    verbose: VerboseOpt = False,
    ):
    """Build posts and pages into the output web root."""
    _configure_logging(verbose)
    settings = _settings(overrides={"posts_dir": posts, "pages_dir": pages, "output_dir": out})
    ctx = BuildContext.create(settings)
    result = asyncio.run(_run(ctx, dry_run=dry_run, force=force))

    for path in result.written:
        typer.echo(f"  wrote {path}")
    for path in result.stamped:
        typer.echo(f"  stamped {path}")
    _echo_failures(result)
    typer.echo(
        f"Build complete - "
        f"{len(result.posts)} post(s), "
        f"{len(result.pages)} page(s), "
        f"{len(result.written)} written, "
        f"{len(result.failures)} failed"
    )
    if not result.ok:
        raise typer.Exit(1)


def check_cmd(
    posts: PostsOpt = None,
    pages: PagesOpt = None,
    out: OutOpt = None,
    verbose: VerboseOpt = False,
    ):
    """List documents whose output is stale, without writing anything."""
    _configure_logging(verbose)
    settings = _settings(overrides={"posts_dir": posts, "pages_dir": pages, "output_dir": out})
    ctx = BuildContext.create(settings)
    result = asyncio.run(_run(ctx, dry_run=True, force=False))

    stale = [r for r in [*result.posts, *result.pages] if r.needs_update]
    for record in stale:
        typer.echo(f"  stale: {record.source_path} -> {record.output_path}")
    _echo_failures(result)
    typer.echo(f"{len(stale)} of {len(result.posts) + len(result.pages)} document(s) need a rebuild")
    if not result.ok:
        raise typer.Exit(1)
