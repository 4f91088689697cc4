from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Stock Ledger Backend"
    env: str = "dev"

    # DATABASE
    database_url: str = "sqlite:///./stockledger.db"
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)
    db_pool_timeout_seconds: int = Field(default=30, ge=1, le=300)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86_400)
    lock_timeout_ms: int = Field(default=5000, ge=100, le=120_000)

    # LOCATIONS
    display_location_code: str = "SHELF"
    warehouse_location_code: str = "WAREHOUSE"
    online_location_code: str = "ONLINE"
    display_default_capacity: int = Field(default=100, ge=1)
    display_default_min_threshold: int = Field(default=10, ge=0)

    # ALLOCATION
    near_expiry_horizon_days: int = Field(default=30, ge=0, le=3650)
    default_batch_shelf_life_days: int = Field(default=730, ge=1)

    # REORDER POLICY
    safety_floor: int = Field(default=50, ge=0)
    sales_window_days: int = Field(default=30, ge=1, le=365)
    fast_capacity_ratio: float = Field(default=0.40, gt=0, le=1)
    fast_min_threshold: int = Field(default=60, ge=0)
    fast_max_threshold: int = Field(default=120, ge=0)
    capacity_floor: int = Field(default=100, ge=1)
    capacity_peak_multiplier: float = Field(default=1.2, ge=1)
    capacity_display_multiplier: int = Field(default=2, ge=1)

    # ALERTS
    alert_cooldown_minutes: int = Field(default=60, ge=0)
    alert_lookback_days: int = Field(default=7, ge=1, le=365)

    @field_validator(
        "display_location_code",
        "warehouse_location_code",
        "online_location_code",
        mode="before",
    )
    @classmethod
    def normalize_location_code(cls, value: str) -> str:
        cleaned = str(value).strip().upper()
        if not cleaned:
            raise ValueError("location code cannot be empty")
        return cleaned

    @model_validator(mode="after")
    def validate_location_codes_distinct(self) -> "Settings":
        codes = {self.display_location_code, self.warehouse_location_code, self.online_location_code}
        if len(codes) != 3:
            raise ValueError("Display, warehouse and online location codes must be distinct")
        if self.fast_min_threshold > self.fast_max_threshold:
            raise ValueError("FAST_MIN_THRESHOLD cannot exceed FAST_MAX_THRESHOLD")
        return self

    @model_validator(mode="after")
    def validate_production_safety(self) -> "Settings":
        env_value = self.env.lower().strip()
        if env_value not in {"prod", "production"}:
            return self

        if self.database_url.lower().startswith("sqlite"):
            raise ValueError("DATABASE_URL must point to a server database with row-level locking in production")
        if self.safety_floor <= 0:
            raise ValueError("SAFETY_FLOOR must be positive in production")
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
