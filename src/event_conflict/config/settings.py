from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Reference data shipped with the package
_CONFIG_DIR = Path(__file__).parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="EVENT_CONFLICT_")

    database_url: str = "sqlite+aiosqlite:///./event_conflict.db"
    engine_config_path: Path = Path("config/engine.yaml")
    seasonal_rules_path: Path = _CONFIG_DIR / "seasonal_rules.yaml"
    holidays_path: Path = _CONFIG_DIR / "holidays.yaml"
    city_aliases_path: Path = _CONFIG_DIR / "city_aliases.yaml"
    gemini_api_key: str = ""
    default_region: str = "CZ"
    use_store: bool = False
    log_json: bool = True
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
