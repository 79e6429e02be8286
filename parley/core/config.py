import tempfile
from pathlib import Path

from pydantic import BaseModel
from pydantic_settings import BaseSettings

CONFIG_DIR = Path.home() / ".config" / "parley"


class Role(BaseModel):
    name: str
    alias: str = ""
    prompt: str = ""
    model: str = ""
    files: list[str] = []


class ModelPrice(BaseModel):
    """USD per million tokens."""

    input: float = 0.0
    output: float = 0.0
    cached_input: float = 0.0


DEFAULT_MODEL_PRICES = {
    "gemini-2.5-pro": ModelPrice(input=1.25, output=10.0, cached_input=0.31),
    "gemini-2.5-flash": ModelPrice(input=0.30, output=2.50, cached_input=0.075),
    "gemini-2.0-flash": ModelPrice(input=0.10, output=0.40, cached_input=0.025),
}


class Settings(BaseSettings):
    app_name: str = "parley"
    debug: bool = False

    # Paths
    config_dir: Path = CONFIG_DIR
    db_path: Path = CONFIG_DIR / "parley.db"
    history_path: Path = Path(tempfile.gettempdir()) / "parley_chat_history"
    log_path: Path = CONFIG_DIR / "parley.log"

    # LLM
    llm_provider: str = "gemini"  # gemini
    gemini_api_key: str = ""
    default_model: str = "gemini-2.5-flash"
    summary_model: str = "gemini-2.0-flash"  # empty disables title generation
    max_tokens: int = 8192
    temperature: float = 1.0
    model_aliases: dict[str, str] = {}
    model_prices: dict[str, ModelPrice] = DEFAULT_MODEL_PRICES

    # Roles
    default_role: str = ""
    roles: list[Role] = []

    # Commit messages (parley diff)
    diff_model: str = ""  # empty falls back to default_model
    diff_ignore_files: list[str] = []

    model_config = {
        "env_file": str(CONFIG_DIR / ".env"),
        "env_prefix": "PARLEY_",
    }

    def resolve_model(self, name: str) -> str:
        """Map a model alias to its full name. Unknown names pass through."""
        return self.model_aliases.get(name, name)


settings = Settings()
