"""
Configuration management for the Terminus narrative engine
"""

from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Server Configuration
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)
    debug: bool = Field(default=False)
    log_level: Literal["DEBUG", "VERBOSE", "INFO", "WARNING", "ERROR", "CRITICAL"] = (
        Field(default="INFO")
    )
    log_file: Optional[str] = Field(default=None)

    # Database Configuration
    database_path: str = Field(
        default="data/terminus.db",
        description="SQLite database file path for save slots and engagement logs",
    )

    # Content Configuration
    content_dir: Optional[str] = Field(
        default=None,
        description="Directory of dialogue graph JSON files (bundled sample content if unset)",
    )

    # Narrative Rules
    start_character_id: str = Field(
        default="samuel", description="Character whose arc a new game starts in"
    )
    min_trust: int = Field(default=0)
    max_trust: int = Field(default=10)
    default_trust: int = Field(default=0)
    save_version: str = Field(default="1.0.0")
    known_characters: List[str] = Field(
        default_factory=lambda: ["samuel", "maya", "devon", "jordan"]
    )
    tracked_patterns: List[str] = Field(
        default_factory=lambda: [
            "analytical",
            "helping",
            "building",
            "patience",
            "exploring",
        ]
    )
    # Pattern total that fills an orb to 100%
    orb_max_count: int = Field(default=100, gt=0)
    dominant_pattern_threshold: int = Field(default=5)
    choice_pattern_increment: int = Field(default=1)


# Global settings instance
settings = Settings()
