import os
import sys
from functools import lru_cache

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel

load_dotenv()

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


class Settings(BaseModel):
    openai_api_key: str = ""
    model: str = "gpt-4o-2024-08-06"
    style_preset: str = "mckinsey"
    max_upload_mb: int = 10
    decode_workers: int = 4
    max_retries: int = 2
    log_level: str = "INFO"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


def _clean_key(value: str) -> str:
    # Strip any accidental smart quotes copied along with the key
    return value.strip(' \t\n\r"“”\'')


def load_settings() -> Settings:
    """Builds Settings from the process environment (after .env has been loaded)."""
    env = os.environ
    return Settings(
        openai_api_key=_clean_key(env.get("OPENAI_API_KEY", "")),
        model=env.get("DECKFORGE_MODEL", "gpt-4o-2024-08-06"),
        style_preset=env.get("DECKFORGE_STYLE", "mckinsey"),
        max_upload_mb=int(env.get("DECKFORGE_MAX_UPLOAD_MB", "10")),
        decode_workers=int(env.get("DECKFORGE_DECODE_WORKERS", "4")),
        max_retries=int(env.get("DECKFORGE_MAX_RETRIES", "2")),
        log_level=env.get("DECKFORGE_LOG_LEVEL", "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def setup_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level)
