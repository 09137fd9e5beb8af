from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "FruitGacha"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/fruitgacha"

    # Seconds a single ledger transaction may take before it is abandoned
    storage_timeout_seconds: float = 10.0

    # Shared secret for /admin routes. Empty disables them entirely.
    admin_token: str = ""

    # Economy
    pull_cost: int = 1000
    starting_balance: int = 5000
    max_pulls_per_batch: int = 100

    # Pity
    soft_pity_threshold: int = 1200
    hard_pity_threshold: int = 1500
    soft_pity_boost_step: float = 0.01
    soft_pity_max_boost: float = 5.0

    # Income
    max_hourly_income: int = 6250
    income_period_seconds: int = 3600
    manual_cooldown_seconds: int = 60
    manual_income_multiplier: float = 2.0

    @model_validator(mode="after")
    def _check_economy(self) -> "Settings":
        if self.pull_cost <= 0:
            raise ValueError("pull_cost must be positive")
        if self.starting_balance < 0:
            raise ValueError("starting_balance cannot be negative")
        if self.max_pulls_per_batch < 1:
            raise ValueError("max_pulls_per_batch must be at least 1")
        if not 0 < self.soft_pity_threshold < self.hard_pity_threshold:
            raise ValueError("soft_pity_threshold must be positive and below hard_pity_threshold")
        if self.soft_pity_boost_step < 0 or self.soft_pity_max_boost < 1:
            raise ValueError("soft pity boost must be non-negative with a cap of at least 1")
        if self.income_period_seconds <= 0 or self.manual_cooldown_seconds < 0:
            raise ValueError("income periods and cooldowns must be positive")
        if self.max_hourly_income < 0 or self.manual_income_multiplier < 0:
            raise ValueError("income rates cannot be negative")
        if self.storage_timeout_seconds <= 0:
            raise ValueError("storage_timeout_seconds must be positive")
        return self


settings = Settings()


# =============================================================================
# INCOME SCALING
# =============================================================================

# Unique fruits needed to reach the maximum hourly income rate
FRUITS_FOR_MAX_INCOME = 5

# Longest accepted player identifier (Discord snowflakes are ~19 digits)
MAX_PLAYER_ID_LENGTH = 64
