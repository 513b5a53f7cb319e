from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///repocredit_local.db"

    # Contiguous period window used for pivots and event filtering
    period_start: int = 2009
    period_end: int = 2023

    value_delimiter: str = ","

    # Sentinels for actors with no value in a dimension
    missing_country: str = "Missing Country"
    missing_sector: str = "Unclassified"
    missing_organization: str = "Missing Organization"

    focal_country: str = "United States"

    conservation_tolerance: float = 1e-9
    validate_conservation: bool = True

    output_workbook: str = "repocredit_tables.xlsx"
    output_start_row: int = 4

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_database_url(cls, value: str) -> str:
        if not isinstance(value, str):
            return value

        normalized = value.strip().strip('"').strip("'")
        if normalized.startswith("postgres://"):
            normalized = "postgresql+asyncpg://" + normalized[len("postgres://") :]
        elif normalized.startswith("postgresql://") and not normalized.startswith("postgresql+asyncpg://"):
            normalized = "postgresql+asyncpg://" + normalized[len("postgresql://") :]

        return normalized

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
