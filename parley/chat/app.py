"""Textual front end for a chat session."""

import logging
from typing import Callable

import pyperclip
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult, SuspendNotSupported
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.message import Message
from textual.widgets import Static, TextArea

from parley.chat.editor import EditorError, open_in_editor
from parley.chat.markdown import MarkdownRenderer
from parley.chat.session import ChatSession, SessionEvent, State, StreamEventReceived
from parley.chat.view import GUTTER_WIDTH, Layout, confirm_prompt, render_transcript, title_bar
from parley.services.history import InputHistory

logger = logging.getLogger(__name__)

MIN_PROMPT_HEIGHT = 3
MAX_PROMPT_HEIGHT = 20
PROMPT_CHROME = 2  # border rows
SCROLL_STEP = 3


class SessionUpdate(Message):
    """A session event delivered through the app's message queue."""

    def __init__(self, event: SessionEvent) -> None:
        super().__init__()
        self.event = event


class PromptInput(TextArea):
    BINDINGS = [
        Binding("ctrl+j", "app.submit", "Send", priority=True),
        Binding("alt+p", "app.history_previous", "History back", priority=True),
        Binding("alt+n", "app.history_next", "History forward", priority=True),
    ]


class Transcript(VerticalScroll):
    BINDINGS = [
        # Terminals send Alt+punctuation as ESC + char, which Textual reports
        # without the alt+ prefix.
        Binding("left_curly_bracket,alt+left_curly_bracket", "app.navigate('to_previous_message')", "Prev message"),
        Binding("right_curly_bracket,alt+right_curly_bracket", "app.navigate('to_next_message')", "Next message"),
        Binding("left_square_bracket,alt+left_square_bracket", "app.navigate('to_previous_block')", "Prev block"),
        Binding("right_square_bracket,alt+right_square_bracket", "app.navigate('to_next_block')", "Next block"),
        Binding("less_than_sign,alt+less_than_sign", "app.navigate('to_top')", "Top"),
        Binding("greater_than_sign,alt+greater_than_sign", "app.navigate('to_bottom')", "Bottom"),
        Binding("ctrl+p", f"scroll_lines({-SCROLL_STEP})", "Scroll up"),
        Binding("ctrl+n", f"scroll_lines({SCROLL_STEP})", "Scroll down"),
        Binding("alt+w", "app.copy_selection", "Copy"),
        Binding("ctrl+o", "app.open_editor", "Edit"),
    ]

    def action_scroll_lines(self, lines: int) -> None:
        self.scroll_relative(y=lines, animate=False)


class ChatApp(App):
    ENABLE_COMMAND_PALETTE = False

    CSS = """
    #title-bar {
        height: auto;
        background: #7C3AED;
        color: #FFFFFF;
        text-style: bold;
    }
    #transcript {
        height: 1fr;
        padding: 0 1;
    }
    #transcript:focus {
        background: $surface;
    }
    #prompt {
        height: 5;
        border: round #6B7280;
    }
    #prompt:focus {
        border: round #7C3AED;
    }
    #confirm {
        height: auto;
        border: round #F59E0B;
        padding: 0 1;
        display: none;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "interrupt", "Cancel / Quit", priority=True),
        Binding("tab", "toggle_focus", "Focus", priority=True),
        Binding("alt+t", "cycle_effort", "Reasoning effort", priority=True),
        Binding("y,Y,enter", "approve_tool", "Approve", priority=True, show=False),
        Binding("n,N,escape", "reject_tool", "Reject", priority=True, show=False),
    ]

    def __init__(
        self,
        build_session: Callable[[Callable[[SessionEvent], None]], ChatSession],
        history: InputHistory,
        role_name: str = "",
    ):
        super().__init__()
        self.session = build_session(lambda event: self.post_message(SessionUpdate(event)))
        self.history = history
        self.role_name = role_name
        self.renderer = MarkdownRenderer()
        self.layout_info = Layout(Text())
        self._history_text: str | None = None
        self._prompt_height = MIN_PROMPT_HEIGHT
        self._confirm_took_focus = False

    def compose(self) -> ComposeResult:
        yield Static(id="title-bar")
        with Transcript(id="transcript"):
            yield Static(id="transcript-body")
        yield PromptInput(id="prompt")
        yield Static(id="confirm")

    def on_mount(self) -> None:
        self.renderer.set_width(self._content_width(self.size.width))
        self.query_one(PromptInput).focus()
        self.refresh_view()

    def on_resize(self, event: events.Resize) -> None:
        self.renderer.set_width(self._content_width(event.size.width))
        self.call_after_refresh(self.refresh_view)

    @staticmethod
    def _content_width(width: int) -> int:
        # transcript padding plus the selection gutter
        return max(width - GUTTER_WIDTH - 4, 20)

    # --- Rendering ---

    @property
    def viewport_focused(self) -> bool:
        return self.focused is self.query_one(Transcript)

    def refresh_view(self) -> None:
        self.layout_info = render_transcript(self.session, self.renderer, show_selection=self.viewport_focused)
        self.query_one("#transcript-body", Static).update(self.layout_info.text)
        self.query_one("#title-bar", Static).update(Text(title_bar(self.session, self.role_name)))

        prompt = self.query_one(PromptInput)
        confirm = self.query_one("#confirm", Static)
        awaiting = self.session.awaiting_confirm
        prompt.display = not awaiting
        confirm.display = awaiting
        if awaiting and self.session.pending_tool_call is not None:
            confirm.update(confirm_prompt(self.session.pending_tool_call, self.session.pending_tool_args or {}))
            if prompt.has_focus:
                self._confirm_took_focus = True
                self.query_one(Transcript).focus()
        elif not awaiting and self._confirm_took_focus:
            self._confirm_took_focus = False
            prompt.focus()

        if not self.session.cursor.active:
            self.query_one(Transcript).scroll_end(animate=False)

    def scroll_to_selection(self) -> None:
        cursor = self.session.cursor
        region = self.layout_info.region(cursor.message_index, cursor.block_index)
        if region is None:
            return
        transcript = self.query_one(Transcript)
        top = transcript.scroll_y
        bottom = top + transcript.size.height
        if region.start < top or region.end > bottom:
            transcript.scroll_to(y=region.start, animate=False)

    # --- Session events ---

    def on_session_update(self, message: SessionUpdate) -> None:
        self.session.handle(message.event)
        if isinstance(message.event, StreamEventReceived):
            return  # throttled; RenderRequested redraws
        self.refresh_view()

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        # confirmation keys fall through to the prompt unless a tool call waits
        if action in ("approve_tool", "reject_tool"):
            return self.session.awaiting_confirm
        return True

    def action_approve_tool(self) -> None:
        if self.session.approve():
            self.refresh_view()

    def action_reject_tool(self) -> None:
        if self.session.reject():
            self.refresh_view()

    # --- Prompt ---

    def on_text_area_changed(self, event: TextArea.Changed) -> None:
        text = event.text_area.text
        if text != self._history_text:
            self.history.reset()
            self._history_text = None

        line_count = event.text_area.document.line_count
        height = min(max(line_count, MIN_PROMPT_HEIGHT), MAX_PROMPT_HEIGHT)
        if height != self._prompt_height:
            delta = height - self._prompt_height
            self._prompt_height = height
            event.text_area.styles.height = height + PROMPT_CHROME
            # shift once the transcript has been resized, so the bottom line stays put
            transcript = self.query_one(Transcript)
            self.call_after_refresh(transcript.scroll_relative, y=delta, animate=False)

    def _set_prompt(self, text: str) -> None:
        prompt = self.query_one(PromptInput)
        self._history_text = text
        prompt.load_text(text)
        prompt.move_cursor(prompt.document.end)

    def action_submit(self) -> None:
        if self.session.state != State.IDLE:
            return
        prompt = self.query_one(PromptInput)
        text = prompt.text
        if not text.strip():
            return
        if self.session.submit(text):
            self.history.add(text)
            self.session.cursor.reset()
            prompt.clear()
            self.refresh_view()

    def action_history_previous(self) -> None:
        if self.session.state != State.IDLE:
            return
        text, moved = self.history.previous(self.query_one(PromptInput).text)
        if moved:
            self._set_prompt(text)

    def action_history_next(self) -> None:
        if self.session.state != State.IDLE:
            return
        text, moved = self.history.next()
        if moved:
            self._set_prompt(text)

    # --- Global ---

    def action_interrupt(self) -> None:
        if self.session.cancel():
            self.notify("Interrupted")
            return
        self.session.shutdown()
        self.exit()

    def action_toggle_focus(self) -> None:
        if self.session.awaiting_confirm:
            return
        if self.viewport_focused:
            self.query_one(PromptInput).focus()
        else:
            self.query_one(Transcript).focus()
            if not self.session.cursor.active:
                self.session.cursor.to_bottom()
        self.refresh_view()
        self.scroll_to_selection()

    def action_cycle_effort(self) -> None:
        effort = self.session.cycle_reasoning_effort()
        self.notify(f"Reasoning effort: {effort.value}")
        self.refresh_view()

    # --- Viewport ---

    def action_navigate(self, move: str) -> None:
        if getattr(self.session.cursor, move)():
            self.refresh_view()
            self.scroll_to_selection()

    def action_copy_selection(self) -> None:
        selection = self.session.cursor.selection()
        if selection is None:
            self.notify("Nothing selected", severity="warning")
            return
        try:
            pyperclip.copy(selection[0])
        except pyperclip.PyperclipException as e:
            self.notify(f"Copy failed: {e}", severity="error")
            return
        self.notify("Copied to clipboard")

    def action_open_editor(self) -> None:
        selection = self.session.cursor.selection()
        if selection is None:
            self.notify("Nothing selected", severity="warning")
            return
        content, ext = selection
        try:
            with self.suspend():
                open_in_editor(content, ext)
        except SuspendNotSupported:
            self.notify("This terminal cannot hand over to an editor", severity="error")
        except EditorError as e:
            self.notify(str(e), severity="error")
