"""Render executor: run a compiled unit inside the async template runtime"""

import asyncio
from typing import Any, Optional

from jinja2 import TemplateError
from markupsafe import Markup

from mdsite.core.compile import CompiledRenderUnit
from mdsite.core.context import BuildContext
from mdsite.core.models import LinkData
from mdsite.errors import RenderError


def render_params(
    ctx: BuildContext,
    unit: CompiledRenderUnit,
    title: str,
    url: str,
    nav_links: list[LinkData],
    ) -> dict[str, Any]:
    """Parameter set handed to a page template's entry point."""
    return {
        "component": unit.name,
        "title": Markup(title),
        "nav_links": nav_links,
        "url": url,
        **ctx.site_params(),
    }


async def execute(unit: CompiledRenderUnit, params: dict[str, Any], timeout: Optional[float] = None) -> str:
    """Render unit with params in a worker thread; raises RenderError on timeout or template failure.

    A timed-out render is abandoned, not interrupted: its thread runs to
    completion while the event loop moves on to other documents.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(unit.render, params), timeout)
    except asyncio.TimeoutError as e:
        raise RenderError(f"Rendering {unit.name} timed out after {timeout}s") from e
    except TemplateError as e:
        raise RenderError(f"Rendering {unit.name} failed: {e}") from e
