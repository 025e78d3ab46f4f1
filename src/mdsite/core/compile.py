"""Page template compiler: normalize template text and build a render unit.

Compilation runs in two stages over the shared Jinja2 environment:

1. template-syntax transform: the normalized text is parsed and turned into
   Python source implementing the render contract (`Environment.compile` with
   `raw=True`);
2. build step: that source is compiled with the Python compiler and executed
   into a module namespace bound to the environment.

Every check along the way reports a Diagnostic. Errors, minus the benign
codes in BENIGN_DIAGNOSTICS, fail the compile with a CompilationError.
"""

import asyncio
import inspect
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from jinja2 import Environment, Template, TemplateSyntaxError, meta
from jinja2.nodes import Template as TemplateNode

from mdsite.core.models import Diagnostic
from mdsite.errors import CompilationError, ContentFormatError, RenderUnitLookupError


logger = logging.getLogger(__name__)

ROUTE_RE = re.compile(r'^[ \t]*\{#-?\s*route\s+"(?P<path>[^"]+)"\s*-?#\}[ \t]*\n?', re.MULTILINE)
TITLE_RE = re.compile(r'<PageTitle>(?P<title>.*?)</PageTitle>[ \t]*\n?', re.DOTALL)
NAV_MENU_RE = re.compile(r'<NavMenu\s*/>|<NavMenu>\s*</NavMenu>')
SCRIPT_TAG_RE = re.compile(r'<script\b', re.IGNORECASE)

ENTRY_POINT = "root"
RENDER_PARAMETERS = frozenset({
    "component", "title", "nav_links", "url",
    "site_name", "header_links", "site_title", "site_description",
})

SYNTAX_ERROR = "T100"
BUILD_ERROR = "T200"
UNDECLARED_NAME = "T300"
SCRIPT_ELEMENT = "T900"
# script elements are lifted out before rendering and never reach the runtime
BENIGN_DIAGNOSTICS = frozenset({SCRIPT_ELEMENT})


@dataclass
class CompiledRenderUnit:
    """A built page template: its generated source, module entry point, and template object."""
    name:        str
    source:      str
    template:    Template
    entry:       Callable
    diagnostics: list[Diagnostic] = field(default_factory=list)

    async def render_async(self, params: dict[str, Any]) -> str:
        """Drive the entry point over a fresh template context and join its output."""
        env = self.template.environment
        context = self.template.new_context(dict(params))
        try:
            return env.concat([chunk async for chunk in self.entry(context)])
        except Exception:
            return env.handle_exception()

    def render(self, params: dict[str, Any]) -> str:
        """Blocking render on a private event loop; meant for a worker thread."""
        return asyncio.run(self.render_async(params))


# --- directives ---

def resolve_route(text: str) -> str:
    """Return the path declared by the `{# route "/path" #}` directive."""
    m = ROUTE_RE.search(text)
    if not m:
        raise ContentFormatError('Page template does not contain a {# route "/path" #} directive')
    return m.group("path").strip()


def resolve_title(text: str) -> Optional[str]:
    """Return the `<PageTitle>` marker text, or None when the template has none."""
    m = TITLE_RE.search(text)
    return m.group("title").strip() if m else None


def normalize(text: str) -> str:
    """Drop directives consumed at compile time and bind library tags to their globals."""
    text = ROUTE_RE.sub("", text)
    text = TITLE_RE.sub("", text)
    return NAV_MENU_RE.sub("{{ NavMenu() }}", text)


# --- diagnostics ---

def _script_diagnostics(text: str) -> list[Diagnostic]:
    return [
        Diagnostic(code=SCRIPT_ELEMENT, severity="error", lineno=lineno,
                   message="<script> element inside template markup")
        for lineno, line in enumerate(text.splitlines(), start=1)
        if SCRIPT_TAG_RE.search(line)
    ]


def _undeclared_diagnostics(env: Environment, ast: TemplateNode) -> list[Diagnostic]:
    known = RENDER_PARAMETERS | set(env.globals)
    return [
        Diagnostic(code=UNDECLARED_NAME, severity="warning",
                   message=f"'{name}' is not a render parameter and will render empty")
        for name in sorted(meta.find_undeclared_variables(ast) - known)
    ]


def failing(diagnostics: list[Diagnostic]) -> list[Diagnostic]:
    return [d for d in diagnostics if d.severity == "error"]


# --- stages ---

def generate_source(env: Environment, name: str, text: str) -> tuple[str, list[Diagnostic]]:
    """Stage one: template text -> generated Python source plus diagnostics."""
    diagnostics = _script_diagnostics(text)
    try:
        ast = env.parse(text, name=name)
        diagnostics.extend(_undeclared_diagnostics(env, ast))
        source = env.compile(ast, name=name, raw=True)
    except TemplateSyntaxError as e:
        diagnostics.append(Diagnostic(code=SYNTAX_ERROR, severity="error", message=e.message or str(e), lineno=e.lineno))
        source = ""
    diagnostics = [d for d in diagnostics if d.code not in BENIGN_DIAGNOSTICS]
    if failing(diagnostics):
        raise CompilationError(name, diagnostics)
    return source, diagnostics


def build_module(env: Environment, name: str, source: str) -> dict[str, Any]:
    """Stage two: compile generated source and execute it into a module namespace."""
    filename = f"<template {name}>"
    try:
        code = compile(source, filename, "exec")
    except SyntaxError as e:
        raise CompilationError(name, [
            Diagnostic(code=BUILD_ERROR, severity="error", message=e.msg, lineno=e.lineno)
        ]) from e
    namespace: dict[str, Any] = {"environment": env, "__file__": filename}
    exec(code, namespace)
    return namespace


def find_entry_point(namespace: dict[str, Any]) -> Callable:
    """Scan a module namespace for the function implementing the render contract."""
    for value in namespace.values():
        if not inspect.isfunction(value) or value.__name__ != ENTRY_POINT:
            continue
        params = list(inspect.signature(value).parameters)
        if params[:1] == ["context"]:
            return value
    raise RenderUnitLookupError(f"No '{ENTRY_POINT}(context, ...)' entry point in compiled module")


def compile_template(env: Environment, name: str, text: str) -> CompiledRenderUnit:
    """Build a render unit from normalized template text, or raise CompilationError."""
    source, diagnostics = generate_source(env, name, text)
    namespace = build_module(env, name, source)
    entry = find_entry_point(namespace)
    template = env.template_class._from_namespace(env, namespace, env.make_globals(None))
    for d in diagnostics:
        logger.warning("%s: %s", name, d)
    logger.debug("Compiled %s (%d bytes of generated source)", name, len(source))
    return CompiledRenderUnit(name=name, source=source, template=template, entry=entry, diagnostics=diagnostics)
