"""Line scanner that lifts code samples, scripts, and components out of mixed content.

The scanner is a pure fold: `step(state, line)` returns the next immutable
ScanState plus the blocks emitted for that line. `scan` drives the fold over
a document and assembles a TemplateSource whose plain-content stream carries
a placeholder element wherever a block was lifted out.
"""

import json
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Iterable, Union

from mdsite.core.models import (
    ComponentInvocation,
    ParsedBlock,
    PlainLine,
    SampleCode,
    ScriptBlock,
    TemplateSource,
)
from mdsite.core.utils.slug import pascal_to_kebab, slugify


logger = logging.getLogger(__name__)

FENCE_MARKERS = ("```", "~~~")
COMPONENT_FENCE_TAG = "component"
DEFAULT_LANGUAGE = "plaintext"
RESERVED_TAGS = frozenset({"PageTitle", "NavMenu"})

COMPONENT_START_RE = re.compile(r'^\s*<(?P<name>[A-Z][A-Za-z0-9]*)(?=[\s/>]|$)')
SCRIPT_START_RE = re.compile(r'<script\b[^>]*>', re.IGNORECASE)
SCRIPT_END_RE = re.compile(r'</script\s*>', re.IGNORECASE)


# --- scanner state ---

@dataclass(frozen=True)
class Default:
    pass


@dataclass(frozen=True)
class InSample:
    language:     str
    is_component: bool
    hint:         str = ""
    buffer:       tuple[str, ...] = ()


@dataclass(frozen=True)
class InScript:
    buffer: tuple[str, ...]


@dataclass(frozen=True)
class InComponent:
    tag:          str
    buffer:       tuple[str, ...]
    depth:        int = 1
    in_start_tag: bool = False      # start tag spans lines and has not reached '>' yet


Mode = Union[Default, InSample, InScript, InComponent]


@dataclass(frozen=True)
class ScanState:
    mode:       Mode = field(default_factory=Default)
    components: int = 0             # last number handed to a component key
    samples:    int = 0             # last number handed to a code-sample key
    keys:       frozenset = frozenset()


# --- placeholders and generated scripts ---

def component_placeholder(key: str) -> str:
    """Loading element a client-side component mounts into."""
    return "\n".join([
        f'<div id="{key}" class="component-block">',
        '    <svg class="loading-progress">',
        '        <circle r="40%" cx="50%" cy="50%" />',
        '        <circle r="40%" cx="50%" cy="50%" />',
        '    </svg>',
        '    <div class="loading-progress-text"></div>',
        '</div>',
    ])


def sample_placeholder(key: str) -> str:
    return f'<div id="{key}" class="code-sample-block"></div>'


def highlighter_script(sample: SampleCode) -> str:
    """Script that mounts a read-only client editor over a code-sample placeholder."""
    value = json.dumps(sample.content).replace("</", "<\\/")
    return "\n".join([
        "<script>",
        "    require(['vs/editor/editor.main'], function () {",
        f"        monaco.editor.create(document.getElementById('{sample.key}'), {{",
        f"            value: {value},",
        "            automaticLayout: true,",
        f"            language: {json.dumps(sample.language)}",
        "        });",
        "    });",
        "</script>",
    ])


# --- transitions ---

def _is_fence(line: str) -> bool:
    return line.startswith(FENCE_MARKERS)


def _join(lines: Iterable[str]) -> str:
    return "".join(f"{line}\n" for line in lines)


def _closes(tag: str, line: str) -> bool:
    return re.search(rf'</{tag}\s*>', line) is not None


def _self_contained(tag: str, line: str) -> bool:
    return line.rstrip().endswith("/>") or _closes(tag, line)


def _claim(state: ScanState, prefix: str, counter: str) -> tuple[str, ScanState]:
    """Return the next unused `<prefix><N>` key and the state that reserves it."""
    n = getattr(state, counter)
    while True:
        n += 1
        key = f"{prefix}{n}"
        if key not in state.keys:
            break
    return key, replace(state, keys=state.keys | {key}, **{counter: n})


def _open_sample(line: str) -> InSample:
    words = line[3:].split()
    if words and words[0] == COMPONENT_FENCE_TAG:
        hint = slugify(words[1]) if len(words) > 1 else ""
        return InSample(language="", is_component=True, hint=hint)
    return InSample(language=words[0] if words else DEFAULT_LANGUAGE, is_component=False)


def _close_sample(state: ScanState, mode: InSample) -> tuple[ScanState, list[ParsedBlock]]:
    if mode.is_component:
        key, state = _claim(state, mode.hint or "component", "components")
        block = ComponentInvocation(key=key, markup=_join(mode.buffer))
    else:
        key, state = _claim(state, "code-block", "samples")
        block = SampleCode(key=key, language=mode.language, content=_join(mode.buffer))
    return replace(state, mode=Default()), [block]


def _register_component(state: ScanState, tag: str, buffer: tuple[str, ...]) -> tuple[ScanState, list[ParsedBlock]]:
    key, state = _claim(state, pascal_to_kebab(tag), "components")
    return replace(state, mode=Default()), [ComponentInvocation(key=key, markup=_join(buffer), name=tag)]


def _open_component(state: ScanState, tag: str, line: str, name_end: int) -> tuple[ScanState, list[ParsedBlock]]:
    if _self_contained(tag, line):
        return _register_component(state, tag, (line,))
    in_start_tag = ">" not in line[name_end:]
    return replace(state, mode=InComponent(tag=tag, buffer=(line,), in_start_tag=in_start_tag)), []


def _component_line(state: ScanState, mode: InComponent, line: str) -> tuple[ScanState, list[ParsedBlock]]:
    buffer = mode.buffer + (line,)
    if mode.in_start_tag:
        if line.rstrip().endswith("/>"):
            return _register_component(state, mode.tag, buffer)
        if ">" not in line:
            return replace(state, mode=replace(mode, buffer=buffer)), []

    depth = mode.depth
    start = COMPONENT_START_RE.match(line)
    if start and start.group("name") == mode.tag:
        # same-named tag opened inside the block; one-liners balance themselves
        if not _self_contained(mode.tag, line):
            depth += 1
    elif _closes(mode.tag, line):
        depth -= 1
    # end tags of other components are kept as nested content

    if depth == 0:
        return _register_component(state, mode.tag, buffer)
    return replace(state, mode=replace(mode, buffer=buffer, depth=depth, in_start_tag=False)), []


def step(state: ScanState, line: str) -> tuple[ScanState, list[ParsedBlock]]:
    """Advance the scanner by one line."""
    mode = state.mode

    if isinstance(mode, InSample):
        if _is_fence(line):
            return _close_sample(state, mode)
        return replace(state, mode=replace(mode, buffer=mode.buffer + (line,))), []

    if isinstance(mode, InComponent):
        return _component_line(state, mode, line)

    if isinstance(mode, InScript):
        buffer = mode.buffer + (line,)
        if SCRIPT_END_RE.search(line):
            return replace(state, mode=Default()), [ScriptBlock("\n".join(buffer))]
        return replace(state, mode=InScript(buffer)), []

    if _is_fence(line):
        return replace(state, mode=_open_sample(line)), []

    start = COMPONENT_START_RE.match(line)
    if start and start.group("name") not in RESERVED_TAGS and start.group("name").lower() != "script":
        return _open_component(state, start.group("name"), line, start.end())

    script = SCRIPT_START_RE.search(line)
    if script:
        if SCRIPT_END_RE.search(line, script.end()):
            return state, [ScriptBlock(line)]
        return replace(state, mode=InScript((line,))), []

    return state, [PlainLine(line)]


# --- driver ---

def scan_blocks(lines: Iterable[str]) -> list[ParsedBlock]:
    """Fold `step` over lines; a block still open at end of input is dropped."""
    state = ScanState()
    blocks: list[ParsedBlock] = []
    for line in lines:
        state, emitted = step(state, line)
        blocks.extend(emitted)
    if not isinstance(state.mode, Default):
        logger.debug("Dropping unterminated %s block at end of input", type(state.mode).__name__)
    return blocks


def assemble(blocks: Iterable[ParsedBlock]) -> TemplateSource:
    """Turn scanned blocks into a plain-content stream with placeholders and side tables."""
    lines: list[str] = []
    sections: dict[str, str] = {}
    samples: dict[str, SampleCode] = {}
    invocations: dict[str, ComponentInvocation] = {}
    scripts: list[str] = []

    for block in blocks:
        if isinstance(block, PlainLine):
            lines.append(block.text)
        elif isinstance(block, ScriptBlock):
            scripts.append(block.content)
        elif isinstance(block, SampleCode):
            samples[block.key] = block
            scripts.append(highlighter_script(block))
            lines.extend(["", sample_placeholder(block.key), ""])
        elif isinstance(block, ComponentInvocation):
            sections[block.key] = block.markup
            invocations[block.key] = block
            lines.extend(["", component_placeholder(block.key), ""])

    return TemplateSource(
        lines=lines,
        sections=sections,
        samples=samples,
        scripts=scripts,
        invocations=invocations,
    )


def scan(lines: Iterable[str]) -> TemplateSource:
    return assemble(scan_blocks(lines))
