"""Tests for block parsing and cached rendering."""

from parley.chat.markdown import Block, MarkdownRenderer, blocks_to_markdown, parse_blocks

SAMPLE = "Here is code:\n```python\ndef f():\n\treturn 1\n```\nAnd a tail.\n```\nplain fence\n```"


def test_parse_text_only():
    assert parse_blocks("hello\nworld") == [Block("hello\nworld")]


def test_parse_empty_content():
    assert parse_blocks("") == []
    assert parse_blocks("\n\n") == []


def test_parse_code_blocks():
    blocks = parse_blocks(SAMPLE)
    assert [b.ext for b in blocks] == ["txt", "python", "txt", "md"]
    assert blocks[0].content == "Here is code:"
    assert blocks[1].content == "def f():\n  return 1"
    assert blocks[2].content == "And a tail."
    assert blocks[3].content == "plain fence"


def test_parse_requires_fence_at_line_start():
    blocks = parse_blocks("inline ```python\nx\n``` fence")
    assert len(blocks) == 1
    assert not blocks[0].is_code


def test_unclosed_fence_stays_text():
    blocks = parse_blocks("start\n```go\nfunc main() {")
    assert len(blocks) == 1
    assert not blocks[0].is_code


def test_code_block_markdown():
    assert Block("x = 1", language="python").markdown() == "```python\nx = 1\n```"


def test_parse_is_idempotent():
    for content in [SAMPLE, "a\n```sh\nls\n```", "```\n```", "just text", "```js\n\n\nconsole.log(1)\n\n```\n\nafter"]:
        blocks = parse_blocks(content)
        assert parse_blocks(blocks_to_markdown(blocks)) == blocks


def test_render_falls_back_to_raw_text(monkeypatch):
    renderer = MarkdownRenderer(width=40)

    def boom(renderable):
        raise RuntimeError("broken renderer")

    monkeypatch.setattr(renderer, "_print", boom)
    assert renderer.render("m1", [Block("**bold**")], finalized=True) == "**bold**"


def test_render_joins_blocks():
    renderer = MarkdownRenderer(width=40)
    blocks = parse_blocks(SAMPLE)
    parts = renderer.render_blocks("m1", blocks, finalized=True)
    assert len(parts) == len(blocks)
    assert renderer.render("m1", blocks, finalized=True) == "\n".join(parts)


def test_finalized_render_is_cached():
    renderer = MarkdownRenderer(width=40)
    blocks = parse_blocks("some *text*")
    first = renderer.render_blocks("m1", blocks, finalized=True)
    assert renderer.render_blocks("m1", blocks, finalized=True) is first


def test_partial_line_is_appended_verbatim():
    renderer = MarkdownRenderer(width=40)
    rendered = renderer.render("m1", parse_blocks("# Title\nhalf **bo"), finalized=False)
    assert rendered.endswith("\nhalf **bo")
    assert "# Title" not in rendered


def test_complete_prefix_rendered_once_per_newline(monkeypatch):
    renderer = MarkdownRenderer(width=40)
    calls = []
    render = renderer.render_block

    def counting(block):
        calls.append(block.content)
        return render(block)

    monkeypatch.setattr(renderer, "render_block", counting)
    text = "line one\nline"
    for i in range(len("line one\n"), len(text) + 1):
        renderer.render("m1", parse_blocks(text[:i]), finalized=False)
    assert calls.count("line one\n") == 1


def test_incremental_render_matches_batch_render():
    content = "Intro *text*\n\n```python\nprint('hi')\n```\nOutro with `code`."
    streaming = MarkdownRenderer(width=50)
    for i in range(1, len(content) + 1):
        streaming.render("m1", parse_blocks(content[:i]), finalized=False)
    final = streaming.render("m1", parse_blocks(content), finalized=True)

    batch = MarkdownRenderer(width=50).render("m2", parse_blocks(content), finalized=True)
    assert final == batch


def test_width_change_invalidates_cache():
    renderer = MarkdownRenderer(width=40)
    blocks = parse_blocks("word " * 30)
    narrow = renderer.render("m1", blocks, finalized=True)
    renderer.set_width(100)
    wide = renderer.render("m1", blocks, finalized=True)
    assert narrow != wide
    assert narrow.count("\n") > wide.count("\n")


def test_line_completed_by_newline_is_rendered():
    renderer = MarkdownRenderer(width=40)
    blocks = parse_blocks("# Heading\n")
    assert renderer.render("m1", blocks, finalized=False) == "# Heading"

    rendered = renderer.render("m1", blocks, finalized=False, line_complete=True)
    assert rendered == renderer.render_block(Block("# Heading\n"))
    assert "# Heading" not in rendered


def test_streamed_heading_renders_once_line_ends():
    renderer = MarkdownRenderer(width=40)
    content = "# Heading\nbody"
    outputs = []
    for i in range(1, len(content) + 1):
        prefix = content[:i]
        outputs.append(renderer.render("m1", parse_blocks(prefix), finalized=False, line_complete=prefix.endswith("\n")))
    newline_at = content.index("\n")
    assert outputs[newline_at - 1] == "# Heading"
    assert "# Heading" not in outputs[newline_at]
    assert outputs[-1].endswith("\nbody")
