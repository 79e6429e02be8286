"""Markdown parsing into text/code blocks and cached terminal rendering."""

import io
import logging
import re
from dataclasses import dataclass

from rich.console import Console, RenderableType
from rich.markdown import Markdown
from rich.syntax import Syntax

logger = logging.getLogger(__name__)

CODE_FENCE = re.compile(r"^```([a-zA-Z]*)\n(.*?)^```", re.S | re.M)
DEFAULT_CODE_LANGUAGE = "md"
DEFAULT_WIDTH = 80
CODE_THEME = "monokai"


@dataclass(frozen=True)
class Block:
    content: str
    language: str = ""  # set for code blocks only

    @property
    def is_code(self) -> bool:
        return bool(self.language)

    @property
    def ext(self) -> str:
        return self.language if self.is_code else "txt"

    def markdown(self) -> str:
        if self.is_code:
            return f"```{self.language}\n{self.content}\n```"
        return self.content


def parse_blocks(content: str) -> list[Block]:
    """Split content at fenced code blocks anchored at line starts."""
    blocks = []
    pos = 0
    for match in CODE_FENCE.finditer(content):
        text = content[pos:match.start()]
        if text.strip():
            blocks.append(Block(text.strip("\n")))
        code = match.group(2).strip("\n").replace("\t", "  ")
        blocks.append(Block(code, language=match.group(1) or DEFAULT_CODE_LANGUAGE))
        pos = match.end()
    tail = content[pos:]
    if tail.strip():
        blocks.append(Block(tail.strip("\n")))
    return blocks


def blocks_to_markdown(blocks: list[Block]) -> str:
    return "\n".join(block.markdown() for block in blocks)


class MarkdownRenderer:
    """Renders blocks to ANSI strings with three levels of caching.

    Finalized messages are cached whole by message id. While a message
    streams, every block but the last is cached by (message id, block
    index), and the last block is rendered incrementally: its complete
    lines are rendered as markdown once per new newline, its trailing
    partial line is appended verbatim.
    """

    def __init__(self, width: int = DEFAULT_WIDTH, code_theme: str = CODE_THEME):
        self.width = width
        self.code_theme = code_theme
        self._console = self._make_console()
        self._messages: dict[str, list[str]] = {}
        self._blocks: dict[tuple[str, int], tuple[Block, str]] = {}
        self._partial_key: tuple[str, int] | None = None
        self._partial_source = ""
        self._partial_rendered = ""

    def _make_console(self) -> Console:
        return Console(
            file=io.StringIO(),
            width=self.width,
            force_terminal=True,
            color_system="truecolor",
        )

    def set_width(self, width: int) -> None:
        if width == self.width:
            return
        self.width = width
        self._console = self._make_console()
        self.clear()

    def clear(self) -> None:
        self._messages.clear()
        self._blocks.clear()
        self._partial_key = None
        self._partial_source = ""
        self._partial_rendered = ""

    def forget(self, message_id: str) -> None:
        self._messages.pop(message_id, None)
        for key in [k for k in self._blocks if k[0] == message_id]:
            del self._blocks[key]

    def _print(self, renderable: RenderableType) -> str:
        with self._console.capture() as capture:
            self._console.print(renderable)
        return capture.get().rstrip("\n")

    def render_block(self, block: Block) -> str:
        try:
            if block.is_code:
                return self._print(Syntax(
                    block.content, block.language,
                    theme=self.code_theme, word_wrap=True, background_color="default",
                ))
            return self._print(Markdown(block.content, code_theme=self.code_theme))
        except Exception as e:
            logger.debug(f"Falling back to raw text for {block.ext} block: {e}")
            return block.content

    def _cached_block(self, key: tuple[str, int], block: Block) -> str:
        cached = self._blocks.get(key)
        if cached is not None and cached[0] == block:
            return cached[1]
        rendered = self.render_block(block)
        self._blocks[key] = (block, rendered)
        return rendered

    def _incremental_block(self, key: tuple[str, int], block: Block, line_complete: bool) -> str:
        if block.is_code:
            # a code block is only parsed once its closing fence arrived
            return self._cached_block(key, block)
        source = f"{block.content}\n" if line_complete else block.content
        cut = source.rfind("\n") + 1
        complete, partial = source[:cut], source[cut:]
        if key != self._partial_key or complete != self._partial_source:
            self._partial_key = key
            self._partial_source = complete
            self._partial_rendered = self.render_block(Block(complete)) if complete.strip() else ""
        if not self._partial_rendered:
            return partial
        if not partial:
            return self._partial_rendered
        return f"{self._partial_rendered}\n{partial}"

    def render_blocks(
        self,
        message_id: str,
        blocks: list[Block],
        finalized: bool,
        line_complete: bool = False,
    ) -> list[str]:
        """Render each block; the result has one string per block.

        `line_complete` tells a streaming render that the content ended with a
        newline, which block parsing strips from the last block.
        """
        if finalized:
            cached = self._messages.get(message_id)
            if cached is None or len(cached) != len(blocks):
                cached = [self._cached_block((message_id, i), b) for i, b in enumerate(blocks)]
                self._messages[message_id] = cached
                if self._partial_key and self._partial_key[0] == message_id:
                    self._partial_key = None
            return cached

        rendered = [self._cached_block((message_id, i), b) for i, b in enumerate(blocks[:-1])]
        if blocks:
            rendered.append(self._incremental_block((message_id, len(blocks) - 1), blocks[-1], line_complete))
        return rendered

    def render(self, message_id: str, blocks: list[Block], finalized: bool, line_complete: bool = False) -> str:
        return "\n".join(self.render_blocks(message_id, blocks, finalized, line_complete))
