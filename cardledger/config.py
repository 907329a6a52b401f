from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CARDLEDGER_")

    app_name: str = "CardLedger"
    debug: bool = False

    # Two independent SQLite files: reseeding the encyclopedia never touches the collection
    encyclopedia_url: str = "sqlite+aiosqlite:///encyclopedia.db"
    collection_url: str = "sqlite+aiosqlite:///collection.db"

    # Increment to trigger a rebuild of the encyclopedia from the bundled dataset
    catalogue_version: int = 29

    stats_cache_ttl_seconds: float = 30.0
    search_batch_size: int = 10


settings = Settings()


# =============================================================================
# QUERY LIMITS
# =============================================================================

# Upper bound on ids bound into a single IN (...) clause
# (SQLite caps the number of host parameters per statement)
IN_CLAUSE_CHUNK_SIZE = 500
