"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Catalog settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CATALOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    storage_prefix: str = "poc:"

    # Migrations
    default_variation_type_name: str = "Composite Variation"
    default_variation_name: str = "Variation 1"
    default_merge_strategy: str = "first-variation"

    # Logging
    log_level: str = "INFO"

    def storage_key(self, collection: str) -> str:
        """Build the store key holding a collection.

        Args:
            collection: Collection name (e.g., "products").

        Returns:
            Prefixed storage key.
        """
        return f"{self.storage_prefix}{collection}"


settings = Settings()
