"""Chat store: CRUD and full-text search over the local SQLite database."""

import logging
import time

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from parley.core import database
from parley.models.chat import Chat, ChatRow, Message

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"title", "messages", "files", "tags", "favorite"})

ORDER_BY = {
    "update_timestamp desc": col(ChatRow.update_timestamp).desc(),
    "creation_timestamp desc": col(ChatRow.creation_timestamp).desc(),
}


class StoreError(Exception):
    pass


class ChatNotFoundError(StoreError):
    def __init__(self, chat_id: str):
        super().__init__(f"chat not found: {chat_id}")
        self.chat_id = chat_id


def now_micros() -> int:
    return time.time_ns() // 1000


def _canonical(values: list[str]) -> list[str]:
    return sorted(set(values))


def _to_row(chat: Chat) -> ChatRow:
    return ChatRow(
        id=chat.id,
        title=chat.title,
        creation_timestamp=chat.creation_timestamp,
        update_timestamp=chat.update_timestamp,
        messages=[m.model_dump(mode="json") for m in chat.messages],
        files=_canonical(chat.files),
        tags=_canonical(chat.tags),
        favorite=chat.favorite,
        delete_timestamp=chat.delete_timestamp,
    )


def _to_chat(row: ChatRow) -> Chat:
    return Chat(
        id=row.id,
        title=row.title,
        creation_timestamp=row.creation_timestamp,
        update_timestamp=row.update_timestamp,
        messages=[Message.model_validate(m) for m in row.messages],
        files=list(row.files),
        tags=list(row.tags),
        favorite=row.favorite,
        delete_timestamp=row.delete_timestamp,
    )


def _parse_page_token(page_token: str) -> int:
    if not page_token:
        return 0
    try:
        offset = int(page_token)
    except ValueError:
        raise StoreError(f"invalid page token: {page_token!r}") from None
    if offset < 0:
        raise StoreError(f"invalid page token: {page_token!r}")
    return offset


class ChatStore:
    def __init__(self, bind: Engine | None = None):
        self.engine = bind or database.engine

    def _index(self, session: Session, row: ChatRow) -> None:
        session.connection().execute(text("DELETE FROM chats_fts WHERE id = :id"), {"id": row.id})
        session.connection().execute(
            text("INSERT INTO chats_fts (id, searchable_content) VALUES (:id, :content)"),
            {"id": row.id, "content": _to_chat(row).searchable_content()},
        )

    def _get_row(self, session: Session, chat_id: str) -> ChatRow:
        row = session.get(ChatRow, chat_id)
        if row is None or row.delete_timestamp is not None:
            raise ChatNotFoundError(chat_id)
        return row

    def get_chat(self, chat_id: str) -> Chat:
        try:
            with Session(self.engine) as session:
                return _to_chat(self._get_row(session, chat_id))
        except SQLAlchemyError as e:
            raise StoreError(f"getting chat {chat_id}: {e}") from e

    def create_chat(self, chat: Chat) -> Chat:
        now = now_micros()
        row = _to_row(chat)
        row.creation_timestamp = chat.creation_timestamp or now
        row.update_timestamp = max(chat.update_timestamp or now, row.creation_timestamp)
        try:
            with Session(self.engine) as session:
                session.add(row)
                session.flush()
                self._index(session, row)
                session.commit()
                session.refresh(row)
                logger.info(f"Created chat {row.id} ({len(row.messages)} messages)")
                return _to_chat(row)
        except SQLAlchemyError as e:
            raise StoreError(f"creating chat {chat.id}: {e}") from e

    def update_chat(self, chat: Chat, update_mask: list[str]) -> Chat:
        """Apply the masked fields of `chat` to the stored record.

        The update timestamp is refreshed whenever something changes; an
        update that changes nothing performs no write.
        """
        unknown = set(update_mask) - UPDATABLE_FIELDS
        if unknown:
            raise StoreError(f"invalid update mask fields: {', '.join(sorted(unknown))}")

        updates = _to_row(chat)
        try:
            with Session(self.engine) as session:
                row = self._get_row(session, chat.id)
                changed = False
                for field in update_mask:
                    value = getattr(updates, field)
                    if getattr(row, field) != value:
                        setattr(row, field, value)
                        changed = True
                if not changed:
                    return _to_chat(row)

                row.update_timestamp = max(now_micros(), row.creation_timestamp)
                session.add(row)
                if "title" in update_mask or "messages" in update_mask:
                    self._index(session, row)
                session.commit()
                session.refresh(row)
                logger.info(f"Updated chat {row.id} ({', '.join(update_mask)})")
                return _to_chat(row)
        except SQLAlchemyError as e:
            raise StoreError(f"updating chat {chat.id}: {e}") from e

    def delete_chat(self, chat_id: str) -> None:
        try:
            with Session(self.engine) as session:
                row = self._get_row(session, chat_id)
                row.delete_timestamp = now_micros()
                session.add(row)
                session.connection().execute(text("DELETE FROM chats_fts WHERE id = :id"), {"id": chat_id})
                session.commit()
                logger.info(f"Deleted chat {chat_id}")
        except SQLAlchemyError as e:
            raise StoreError(f"deleting chat {chat_id}: {e}") from e

    def list_chats(
        self,
        page_size: int = 20,
        page_token: str = "",
        tags: list[str] | None = None,
        favorite: bool | None = None,
        order_by: str = "update_timestamp desc",
    ) -> tuple[list[Chat], str]:
        """List chats, newest first. Returns the page and the next page token ("" when done)."""
        if order_by not in ORDER_BY:
            raise StoreError(f"invalid order: {order_by!r}")
        offset = _parse_page_token(page_token)

        statement = select(ChatRow).where(col(ChatRow.delete_timestamp).is_(None))
        if favorite is not None:
            statement = statement.where(ChatRow.favorite == favorite)
        statement = statement.order_by(ORDER_BY[order_by])

        try:
            with Session(self.engine) as session:
                if tags:
                    wanted = set(tags)
                    rows = [r for r in session.exec(statement).all() if wanted.issubset(r.tags)]
                    rows = rows[offset:offset + page_size + 1]
                else:
                    rows = list(session.exec(statement.offset(offset).limit(page_size + 1)).all())
                chats = [_to_chat(r) for r in rows[:page_size]]
        except SQLAlchemyError as e:
            raise StoreError(f"listing chats: {e}") from e

        next_token = str(offset + page_size) if len(rows) > page_size else ""
        return chats, next_token

    def search_chats(self, query: str, page_size: int = 20, page_token: str = "") -> tuple[list[Chat], str]:
        """Full-text search using the FTS5 query syntax."""
        offset = _parse_page_token(page_token)
        try:
            with Session(self.engine) as session:
                ids = session.connection().execute(
                    text(
                        "SELECT id FROM chats_fts WHERE chats_fts MATCH :query "
                        "ORDER BY rank LIMIT :limit OFFSET :offset"
                    ),
                    {"query": query, "limit": page_size + 1, "offset": offset},
                ).scalars().all()
                chats = []
                for chat_id in ids[:page_size]:
                    row = session.get(ChatRow, chat_id)
                    if row is not None and row.delete_timestamp is None:
                        chats.append(_to_chat(row))
        except SQLAlchemyError as e:
            raise StoreError(f"searching chats for {query!r}: {e}") from e

        next_token = str(offset + page_size) if len(ids) > page_size else ""
        return chats, next_token

    def latest_chat(self) -> Chat:
        chats, _ = self.list_chats(page_size=1, order_by="creation_timestamp desc")
        if not chats:
            raise ChatNotFoundError("latest")
        return chats[0]
