"""Chat title generation."""

import logging

from parley.models.chat import Chat, Message
from parley.services.llm.base import BaseGenerator, GenerateConfig, GeneratorError
from parley.services.store import ChatStore, StoreError

logger = logging.getLogger(__name__)

TITLE_PROMPT = (
    "Generate a brief, concise title (max 6 words) for this conversation so far. "
    "YOU MUST ALWAYS OUTPUT SOMETHING."
)
TITLE_MAX_TOKENS = 50


def clean_title(raw: str) -> str:
    return raw.strip().strip("\"'").replace("\n", " ").strip()


async def summarize(generator: BaseGenerator, messages: list[Message], model: str) -> str:
    """Ask the generator for a short title. Returns "" when nothing usable came back."""
    assert messages and messages[0].role == "user", "title seed must start with a user message"
    request = [Message(role="system", content=TITLE_PROMPT)] + [
        Message(role=m.role, content=m.content) for m in messages if m.role in ("user", "assistant")
    ]
    response = await generator.generate(request, GenerateConfig(model=model, max_tokens=TITLE_MAX_TOKENS))
    return clean_title(response.content)


async def generate_title(generator: BaseGenerator, store: ChatStore, chat: Chat, model: str) -> str | None:
    """Best-effort: title the chat from its first exchange and persist it.

    Failures are logged and swallowed; the chat simply stays untitled.
    """
    if not model:
        return None
    try:
        title = await summarize(generator, chat.messages[:2], model)
        if not title:
            return None
        store.update_chat(chat.model_copy(update={"title": title}), ["title"])
    except (GeneratorError, StoreError) as e:
        logger.warning(f"Title generation failed for chat {chat.id}: {e}")
        return None
    except Exception:
        logger.exception(f"Unexpected error generating a title for chat {chat.id}")
        return None
    logger.info(f"Titled chat {chat.id}: {title!r}")
    return title


async def generate_missing_titles(generator: BaseGenerator, store: ChatStore, model: str) -> int:
    """Title every chat that has none yet. Returns the number of chats titled."""
    titled = 0
    page_token = ""
    while True:
        chats, page_token = store.list_chats(
            page_size=50, page_token=page_token, order_by="creation_timestamp desc"
        )
        for chat in chats:
            if chat.title or not chat.messages or chat.messages[0].role != "user":
                continue
            if await generate_title(generator, store, chat, model):
                titled += 1
        if not page_token:
            return titled
