from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str  # mongodb://host:port/dbname, the path selects the database
    debug: bool = False
    counters_collection: str = "counters"
    field: str = "_id"
    step: int = 1
    max_retries: int | None = None  # None retries duplicate-key conflicts forever

    model_config = {
        "env_file": [".env"],
        "env_prefix": "AUTOINCREMENT_",
        "extra": "ignore",
    }
