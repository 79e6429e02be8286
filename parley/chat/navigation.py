"""Message/block cursor for the transcript viewport."""

from parley.chat.messages import RuntimeMessage


class Cursor:
    """Selection over (message index, block index); -1 means no selection.

    Every move returns whether the cursor actually moved.
    """

    def __init__(self, messages: list[RuntimeMessage]):
        self.messages = messages
        self.message_index = -1
        self.block_index = -1

    @property
    def active(self) -> bool:
        return self.message_index != -1

    def reset(self) -> None:
        self.message_index = -1
        self.block_index = -1

    def _last_block(self, message_index: int) -> int:
        return max(len(self.messages[message_index].blocks) - 1, 0)

    def _move(self, message_index: int, block_index: int) -> bool:
        if (message_index, block_index) == (self.message_index, self.block_index):
            return False
        self.message_index = message_index
        self.block_index = block_index
        return True

    def to_top(self) -> bool:
        if not self.messages:
            return False
        return self._move(0, 0)

    def to_bottom(self) -> bool:
        if not self.messages:
            return False
        last = len(self.messages) - 1
        return self._move(last, self._last_block(last))

    def to_previous_message(self) -> bool:
        if not self.messages:
            return False
        if self.message_index == -1:
            return self.to_bottom()
        if self.message_index == 0:
            return False
        index = self.message_index - 1
        return self._move(index, self._last_block(index))

    def to_next_message(self) -> bool:
        if self.message_index == -1 or self.message_index >= len(self.messages) - 1:
            return False
        return self._move(self.message_index + 1, 0)

    def to_previous_block(self) -> bool:
        if self.message_index == -1:
            return self.to_previous_message()
        if self.block_index == -1:
            return self._move(self.message_index, self._last_block(self.message_index))
        if self.block_index > 0:
            return self._move(self.message_index, self.block_index - 1)
        return self.to_previous_message()

    def to_next_block(self) -> bool:
        if self.message_index == -1:
            return False
        if self.block_index == -1:
            return self._move(self.message_index, 0)
        if self.block_index < len(self.messages[self.message_index].blocks) - 1:
            return self._move(self.message_index, self.block_index + 1)
        return self.to_next_message()

    def selection(self) -> tuple[str, str] | None:
        """(content, extension) of the selected block, or None."""
        if not self.active or self.message_index >= len(self.messages):
            return None
        return self.messages[self.message_index].selection(self.block_index)
