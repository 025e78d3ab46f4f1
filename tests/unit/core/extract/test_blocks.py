"""Unit tests for core/extract/blocks.py"""

import re

from mdsite.core.extract.blocks import (
    Default,
    InSample,
    ScanState,
    component_placeholder,
    sample_placeholder,
    scan,
    scan_blocks,
    step,
)
from mdsite.core.models import PlainLine, SampleCode, ScriptBlock


def test_plain_lines_pass_through():
    result = scan(["# Title", "", "Some text."])
    assert result.lines == ["# Title", "", "Some text."]
    assert result.sections == {}
    assert result.samples == {}
    assert result.scripts == []


def test_anonymous_component_fence():
    """A ```component fence is lifted out verbatim under component<N>."""
    result = scan(["Intro", "```component", '<Counter Start="3" />', "<p>Count</p>", "```", "Outro"])
    assert list(result.sections) == ["component1"]
    assert result.sections["component1"] == '<Counter Start="3" />\n<p>Count</p>\n'
    assert component_placeholder("component1") in result.lines
    assert result.lines[0] == "Intro"
    assert result.lines[-1] == "Outro"


def test_component_fence_hint_names_key():
    result = scan(["```component Weather Widget", "<Weather />", "```"])
    assert list(result.sections) == ["weather1"]
    assert result.invocations["weather1"].name is None


def test_code_samples_numbered_in_order():
    result = scan(["```python", "print('a')", "```", "text", "```", "plain", "```"])
    assert list(result.samples) == ["code-block1", "code-block2"]
    assert result.samples["code-block1"].language == "python"
    assert result.samples["code-block1"].content == "print('a')\n"
    assert result.samples["code-block2"].language == "plaintext"
    assert sample_placeholder("code-block1") in result.lines
    assert len(result.scripts) == 2
    assert "getElementById('code-block1')" in result.scripts[0]
    assert "getElementById('code-block2')" in result.scripts[1]


def test_tilde_fence():
    result = scan(["~~~js", "let a;", "~~~"])
    assert result.samples["code-block1"].language == "js"


def test_sample_script_escapes_closing_tags():
    result = scan(["```html", "</script>", "```"])
    script = result.scripts[0]
    assert "<\\/script>" in script
    assert script.count("</script>") == 1


def test_fence_content_is_not_scanned():
    """Tags and scripts inside a code sample stay sample content."""
    result = scan(["```html", "<Counter />", "<script>x()</script>", "```"])
    assert result.sections == {}
    assert result.samples["code-block1"].content == "<Counter />\n<script>x()</script>\n"
    assert len(result.scripts) == 1


def test_self_closing_component_tag():
    result = scan(['<WeatherCard City="Oslo" />'])
    assert result.sections == {"weather-card1": '<WeatherCard City="Oslo" />\n'}
    assert result.invocations["weather-card1"].name == "WeatherCard"
    assert result.lines == ["", component_placeholder("weather-card1"), ""]


def test_single_line_component_with_end_tag():
    result = scan(["<Alert>Careful</Alert>"])
    assert result.sections == {"alert1": "<Alert>Careful</Alert>\n"}


def test_multiline_component_block():
    lines = ["<Tabs>", '  <Tab Title="A">one</Tab>', "</Tabs>", "after"]
    result = scan(lines)
    assert result.sections == {"tabs1": "<Tabs>\n  <Tab Title=\"A\">one</Tab>\n</Tabs>\n"}
    assert result.lines[-1] == "after"


def test_mismatched_end_tag_keeps_buffering():
    lines = ["<Outer>", "<Inner>", "text", "</Inner>", "</Outer>"]
    result = scan(lines)
    assert list(result.sections) == ["outer1"]
    assert result.sections["outer1"] == "".join(f"{line}\n" for line in lines)


def test_nested_same_name_components_balance():
    lines = ["<Panel>", "<Panel>", "inner", "</Panel>", "</Panel>", "after"]
    result = scan(lines)
    assert list(result.sections) == ["panel1"]
    assert result.sections["panel1"].count("</Panel>") == 2
    assert "after" in result.lines
    assert "</Panel>" not in result.lines


def test_multiline_self_closing_start_tag():
    result = scan(["<Chart", '  Kind="bar"', '  Data="x" />', "after"])
    assert result.sections == {"chart1": '<Chart\n  Kind="bar"\n  Data="x" />\n'}
    assert result.lines[-1] == "after"


def test_reserved_tags_pass_through():
    lines = ["<PageTitle>Home</PageTitle>", "<NavMenu />"]
    result = scan(lines)
    assert result.lines == lines
    assert result.sections == {}


def test_component_keys_share_one_counter():
    result = scan(["<Alert />", "```component", "x", "```", "<Alert />", "```text", "y", "```"])
    assert list(result.sections) == ["alert1", "component2", "alert3"]
    assert list(result.samples) == ["code-block1"]


def test_colliding_key_skips_number():
    """A fence hinted 'alert1' claims alert11, so the eleventh Alert moves on to alert12."""
    lines = ["```component alert1", "x", "```"] + ["<Alert />"] * 10
    result = scan(lines)
    assert len(result.sections) == 11
    assert "alert11" in result.sections
    assert "alert12" in result.sections
    assert result.sections["alert11"] == "x\n"


def test_one_line_script_is_lifted():
    result = scan(['<script src="/app.js"></script>'])
    assert result.scripts == ['<script src="/app.js"></script>']
    assert result.lines == []


def test_uppercase_script_tags_are_scripts():
    result = scan(["<SCRIPT>", "x()", "</SCRIPT>", '<Script src="/a.js"></Script>'])
    assert result.scripts == ["<SCRIPT>\nx()\n</SCRIPT>", '<Script src="/a.js"></Script>']
    assert result.sections == {}
    assert result.lines == []


def test_multiline_script_is_lifted():
    result = scan(["<script>", "let x = 1;", "</script>", "after"])
    assert result.scripts == ["<script>\nlet x = 1;\n</script>"]
    assert result.lines == ["after"]


def test_unterminated_blocks_are_dropped():
    assert scan(["before", "```python", "x = 1"]).lines == ["before"]
    result = scan(["before", "<Widget>", "content"])
    assert result.lines == ["before"]
    assert result.sections == {}


def test_step_does_not_mutate_state():
    s0 = ScanState()
    s1, out = step(s0, "```python")
    assert isinstance(s0.mode, Default)
    assert isinstance(s1.mode, InSample)
    assert out == []
    s2, _ = step(s1, "x = 1")
    assert s1.mode.buffer == ()
    assert s2.mode.buffer == ("x = 1",)


def test_scan_blocks_emits_block_variants():
    blocks = scan_blocks(["text", "```", "code", "```", "<script>a()</script>"])
    assert blocks == [
        PlainLine("text"),
        SampleCode(key="code-block1", language="plaintext", content="code\n"),
        ScriptBlock("<script>a()</script>"),
    ]


def test_every_placeholder_has_an_entry():
    lines = [
        "# Doc", "<Card />", "```component", "<X />", "```",
        "```py", "pass", "```", "<Box>", "<Box />", "</Box>",
    ]
    result = scan(lines)
    ids = re.findall(r'<div id="([^"]+)"', result.text)
    assert ids
    for key in ids:
        assert key in result.sections or key in result.samples
