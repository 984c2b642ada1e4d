from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):
    # Database settings
    database_url: str = "sqlite:///./coupleledger.db"
    reset_database_on_startup: bool = False

    # Display currency; the engine itself is currency-agnostic
    currency: str = "SEK"

    # Savings goals
    enforce_contribution_cap: bool = True
    quick_add_increments: List[int] = [50, 100, 250]

    # Budget optimization
    optimizer_history_months: int = 12
    tip_lifetime_days: int = 30

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_prefix="COUPLELEDGER_", extra="ignore")

@lru_cache()
def get_settings():
    return Settings()
