"""Transcript layout and title bar formatting."""

from dataclasses import dataclass, field
from typing import Any

from rich.text import Text

from parley.chat.markdown import MarkdownRenderer
from parley.chat.messages import Kind, RuntimeMessage
from parley.chat.session import ChatSession, State
from parley.models.chat import ToolCall

PRIMARY = "#7C3AED"
SECONDARY = "#06B6D4"
ACCENT = "#F59E0B"
SUCCESS = "#10B981"
ERROR = "#EF4444"
MUTED = "#6B7280"
THOUGHT = "#FCD34D"
FILE = "#F472B6"
SELECTED = "#10B981"
UNSELECTED = "#9CA3AF"

GUTTER_WIDTH = 2

HEADERS = {
    Kind.REASONING: ("💭 Reasoning", THOUGHT),
    Kind.TOOL_CALL: ("🔧 Tool call", ACCENT),
    Kind.TOOL_RESULT: ("📤 Tool result", SECONDARY),
    Kind.SYSTEM: ("⚙ System", MUTED),
}


def format_token_count(count: int) -> str:
    if count < 1000:
        return str(count)
    if count < 1_000_000:
        return f"{count / 1000:.1f}k"
    return f"{count / 1_000_000:.1f}m"


def title_bar(session: ChatSession, role_name: str = "") -> str:
    usage = session.usage
    parts = [
        f"🤖 {session.config.model}",
        f"👤 {role_name or 'anon'}",
        f"💬 {session.chat.id}",
        f"🧠 {session.config.reasoning_effort.value}",
        f"📊 ↑{format_token_count(usage.input_tokens)} ↓{format_token_count(usage.output_tokens)} "
        f"${usage.price:.4f}",
    ]
    tools = " 🔧" if session.tools_enabled else ""
    return f" {' │ '.join(parts)}{tools} "


def confirm_prompt(tool_call: ToolCall, args: dict[str, Any]) -> Text:
    text = Text()
    text.append("Run tool ", style="bold")
    text.append(tool_call.name, style=f"bold {ACCENT}")
    text.append("?\n")
    for name, value in args.items():
        text.append(f"  {name}: ", style=MUTED)
        text.append(f"{value}\n")
    text.append("[y/Enter] approve   [n/Esc] reject", style=MUTED)
    return text


@dataclass
class Region:
    start: int  # first line
    end: int  # one past the last line


@dataclass
class Layout:
    text: Text
    messages: list[Region] = field(default_factory=list)
    blocks: dict[tuple[int, int], Region] = field(default_factory=dict)

    def region(self, message_index: int, block_index: int) -> Region | None:
        if (message_index, block_index) in self.blocks:
            return self.blocks[(message_index, block_index)]
        if 0 <= message_index < len(self.messages):
            return self.messages[message_index]
        return None


class _Writer:
    def __init__(self) -> None:
        self.text = Text()
        self.line = 0

    def write(self, piece: Text) -> Region:
        start = self.line
        self.text.append_text(piece)
        self.text.append("\n")
        self.line += piece.plain.count("\n") + 1
        return Region(start, self.line)


def _with_gutter(piece: Text, marker: str, style: str) -> Text:
    return Text("\n").join(Text(marker, style=style) + line for line in piece.split("\n", allow_blank=True))


def _body(message: RuntimeMessage, renderer: MarkdownRenderer) -> list[Text]:
    if message.kind == Kind.USER:
        return [Text("\n").join(
            Text("> ", style=f"bold {PRIMARY}") + Text(line, style=PRIMARY)
            for line in message.content.split("\n")
        )]
    rendered = renderer.render_blocks(
        message.id, message.blocks,
        finalized=not message.streaming,
        line_complete=message.content.endswith("\n"),
    )
    style = f"italic {THOUGHT}" if message.kind == Kind.REASONING else ""
    return [Text.from_ansi(part, style=style) for part in rendered]


def render_transcript(
    session: ChatSession,
    renderer: MarkdownRenderer,
    show_selection: bool = False,
) -> Layout:
    """Lay out every runtime message and record where each message and block landed."""
    writer = _Writer()
    layout = Layout(writer.text)
    cursor = session.cursor

    if session.files:
        writer.write(Text(f"📎 {', '.join(sorted(set(session.files)))}", style=FILE))
        writer.write(Text())

    for i, message in enumerate(session.messages):
        start = writer.line
        selected_message = show_selection and cursor.message_index == i
        if message.kind in HEADERS:
            label, style = HEADERS[message.kind]
            writer.write(Text(label, style=f"bold {style}"))

        parts = _body(message, renderer)
        for j, piece in enumerate(parts):
            if selected_message:
                if cursor.block_index in (-1, j):
                    piece = _with_gutter(piece, "▌ ", SELECTED)
                else:
                    piece = _with_gutter(piece, "│ ", UNSELECTED)
            region = writer.write(piece)
            if message.kind != Kind.USER:
                layout.blocks[(i, j)] = region

        if message.error:
            writer.write(Text(f"✗ {message.error}", style=ERROR))
        layout.messages.append(Region(start, writer.line))
        writer.write(Text())

    if session.state == State.STREAMING:
        writer.write(Text("● generating…", style=ACCENT))
    elif session.state == State.EXECUTING:
        writer.write(Text("⚙ running tool…", style=ACCENT))
    return layout
