from pathlib import Path
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

# Load .env from repo root for local development and scripts.
ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(dotenv_path=ENV_PATH)

class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True, populate_by_name=True)
    tick_dir: str = Field(default="./data/tick", alias="TICK_DIR")
    tick_file_suffix: str = Field(default=".txt", alias="TICK_FILE_SUFFIX")
    duplicate_window_seconds: int = Field(default=60, alias="DUPLICATE_WINDOW_SECONDS")
    compact_max_age_days: int = Field(default=365, alias="COMPACT_MAX_AGE_DAYS")
    tail_default_count: int = Field(default=500, alias="TAIL_DEFAULT_COUNT")
    local_tz: str = Field(default="Europe/Berlin", alias="LOCAL_TZ")

settings = Settings()
