from pathlib import Path
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

# Load .env from repo root for local development and scripts.
ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(dotenv_path=ENV_PATH)

class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True)
    db_path: str = Field(default="./data/scorecard.db", alias="DB_PATH")
    local_tz: str = Field(default="America/New_York", alias="LOCAL_TZ")
    period_min_year: int = Field(default=2000, alias="PERIOD_MIN_YEAR")
    period_max_year: int = Field(default=2100, alias="PERIOD_MAX_YEAR")

settings = Settings()
