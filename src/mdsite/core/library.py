"""Default component library, static component registry, layouts, and navigation links"""

import inspect
import logging
import re
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional, Union

from jinja2 import ChoiceLoader, DictLoader, Environment, FileSystemLoader, TemplateNotFound, pass_context
from markupsafe import Markup

from mdsite.core.extract.blocks import component_placeholder
from mdsite.core.models import ComponentInvocation, LinkData, PageMetadata, PostMetadata
from mdsite.errors import RenderError


logger = logging.getLogger(__name__)

ATTR_RE = re.compile(r'(?P<name>[A-Za-z_][\w-]*)\s*=\s*"(?P<value>[^"]*)"')

ComponentFunc = Callable[[dict[str, str], str], Union[str, Awaitable[str]]]


# --- globals available to every page template ---

@pass_context
def nav_menu(context) -> Markup:
    """Render the site navigation from the `nav_links` render parameter."""
    current = context.get("url")
    items = Markup("").join(
        Markup('<li><a href="{}"{}>{}</a></li>').format(
            link.url, Markup(' class="active"') if link.url == current else "", link.title
        )
        for link in context.get("nav_links") or []
    )
    return Markup('<nav class="nav-menu"><ul>{}</ul></nav>').format(items)


def page_title(*args, **kwargs) -> str:
    # the title marker is consumed at compile time
    return ""


LIBRARY_GLOBALS = {"NavMenu": nav_menu, "PageTitle": page_title}


# --- static component registry ---

class ComponentRegistry:
    """Maps component tag names to pre-built renderers used for static fallbacks."""

    def __init__(self, components: Optional[dict[str, ComponentFunc]] = None):
        self._components: dict[str, ComponentFunc] = dict(components or {})

    def __contains__(self, name: str) -> bool:
        return name in self._components

    def __len__(self) -> int:
        return len(self._components)

    def register(self, name: str, func: Optional[ComponentFunc] = None):
        """Register func under name; usable as a decorator when func is omitted."""
        if func is None:
            return lambda f: self.register(name, f)
        self._components[name] = func
        return func

    def load_templates(self, env: Environment, directory: Path) -> None:
        """Register every `<Name>.jinja` under directory as a template-backed component."""
        if not directory.is_dir():
            return
        for path in sorted(directory.glob("*.jinja")):
            template_name = f"{directory.name}/{path.name}"
            self.register(path.stem, _template_component(env, template_name))
            logger.debug("Registered component %s from %s", path.stem, path)

    async def render(self, name: str, attrs: dict[str, str], children: str = "") -> str:
        result = self._components[name](attrs, children)
        if inspect.isawaitable(result):
            result = await result
        return str(result)


def _template_component(env: Environment, template_name: str) -> ComponentFunc:
    async def render(attrs: dict[str, str], children: str) -> str:
        template = env.get_template(template_name)
        return await template.render_async(**attrs, children=Markup(children))
    return render


def split_invocation(invocation: ComponentInvocation) -> tuple[dict[str, str], str]:
    """Return (attributes, children) for a tag-style invocation."""
    markup = invocation.markup.strip()
    start_end = markup.find(">")
    start_tag = markup[:start_end + 1] if start_end >= 0 else markup
    attrs = {m.group("name"): m.group("value") for m in ATTR_RE.finditer(start_tag)}
    if start_tag.endswith("/>"):
        return attrs, ""
    close = markup.rfind(f"</{invocation.name}")
    return attrs, markup[start_end + 1:close if close >= 0 else None].strip()


async def prerender_sections(
    registry: ComponentRegistry,
    invocations: dict[str, ComponentInvocation],
    ) -> dict[str, str]:
    """Render every registered tag-style invocation; returns key -> HTML fragment."""
    fragments: dict[str, str] = {}
    for key, invocation in invocations.items():
        if invocation.name is None or invocation.name not in registry:
            continue
        attrs, children = split_invocation(invocation)
        try:
            fragments[key] = await registry.render(invocation.name, attrs, children)
        except Exception as e:
            raise RenderError(f"Component {invocation.name} ({key}) failed to render: {e}") from e
    return fragments


def substitute_placeholders(html: str, fragments: dict[str, str]) -> str:
    """Swap each rendered fragment into its component placeholder."""
    for key, fragment in fragments.items():
        html = html.replace(
            component_placeholder(key),
            f'<div id="{key}" class="component-block prerendered">{fragment}</div>',
        )
    return html


# --- layouts ---

DEFAULT_LAYOUTS = {
    "BaseLayout": """\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>{{ record.title }} | {{ site_title }}</title>
    {%- if record.description %}
    <meta name="description" content="{{ record.description }}" />
    {%- endif %}
</head>
<body>
    <header>
        <a class="site-name" href="/">{{ site_name }}</a>
        {{ header_links }}
        {{ NavMenu() }}
    </header>
    <main>
{% block main %}{% endblock %}
    </main>
    <footer>{{ site_description }}</footer>
    {%- for key, markup in record.component_sections.items() %}
    <template id="{{ key }}-source">{{ markup }}</template>
    {%- endfor %}
    {%- for script in record.scripts %}
    {{ script | safe }}
    {%- endfor %}
</body>
</html>
""",
    "PostLayout": """\
{% extends "BaseLayout" %}
{% block main %}
<article class="post">
    <h1 class="post-title">{{ record.title }}</h1>
    {%- if record.subtitle %}
    <p class="post-subtitle">{{ record.subtitle }}</p>
    {%- endif %}
    <p class="post-meta">{{ record.published.isoformat() }}{% if record.author %} by {{ record.author }}{% endif %}</p>
{{ record.body_html | safe }}
</article>
{% endblock %}
""",
    "PageLayout": """\
{% extends "BaseLayout" %}
{% block main %}
<article class="page">
{{ record.body_html | safe }}
</article>
{%- if record.url_path == "/" and post_links %}
<section class="recent-posts">
    <ul>
    {%- for link in post_links %}
        <li><a href="{{ link.url }}">{{ link.title }}</a> <time>{{ link.published.isoformat() }}</time></li>
    {%- endfor %}
    </ul>
</section>
{%- endif %}
{% endblock %}
""",
}


def make_environment(layouts_dir: Path) -> Environment:
    """Async Jinja2 environment shared by page templates, components, and layouts."""
    env = Environment(
        loader=ChoiceLoader([FileSystemLoader(str(layouts_dir)), DictLoader(DEFAULT_LAYOUTS)]),
        autoescape=True,
        enable_async=True,
    )
    env.globals.update(LIBRARY_GLOBALS)
    return env


async def render_layout(
    env: Environment,
    record: Union[PageMetadata, PostMetadata],
    site_params: dict,
    nav_links: list[LinkData],
    post_links: list[LinkData],
    ) -> str:
    """Wrap a record's body HTML in its layout; `<Name>.jinja` in the layouts dir overrides a default."""
    try:
        template = env.select_template([f"{record.layout}.jinja", record.layout])
    except TemplateNotFound as e:
        raise RenderError(f"Unknown layout {record.layout!r} for {record.source_path}") from e
    return await template.render_async(
        record=record,
        url=record.url_path,
        nav_links=nav_links,
        post_links=post_links,
        **site_params,
    )


# --- navigation ---

def collect_nav_links(entries: Iterable[tuple[int, LinkData]]) -> list[LinkData]:
    """Links for pages with a positive nav order, ascending; ties keep discovery order."""
    ordered = sorted((e for e in entries if e[0] > 0), key=lambda e: e[0])
    return [link for _, link in ordered]


def collect_post_links(posts: Iterable[PostMetadata]) -> list[LinkData]:
    """Post links, newest first."""
    return [
        LinkData(title=p.title, subtitle=p.subtitle, url=p.url_path, published=p.published, author=p.author)
        for p in sorted(posts, key=lambda p: (p.published, p.url_path), reverse=True)
    ]
