from sqlalchemy import Engine, text
from sqlmodel import SQLModel, create_engine

from parley.core.config import settings

engine = create_engine(
    f"sqlite:///{settings.db_path}",
    echo=settings.debug,
    connect_args={"check_same_thread": False},
)

CREATE_FTS_TABLE = (
    "CREATE VIRTUAL TABLE IF NOT EXISTS chats_fts "
    "USING fts5(id UNINDEXED, searchable_content)"
)


def init_db(bind: Engine | None = None) -> None:
    import parley.models.chat  # noqa: F401 - ensure models are registered

    bind = bind or engine
    if bind is engine:
        settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(bind)
    with bind.begin() as conn:
        conn.execute(text(CREATE_FTS_TABLE))