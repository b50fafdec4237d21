"""Configuration settings for the peer marketplace."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal


@dataclass(slots=True)
class StorageConfig:
    """Settings for the delimited record streams."""

    delimiter: str = ";"
    """Field separator used in every stream."""

    delimiter_substitute: str = ","
    """Written in place of the delimiter inside message content. Not reversible."""

    users_file: str = "users.csv"
    products_file: str = "products.csv"
    sales_file: str = "sales.csv"
    chats_file: str = "chats.csv"
    messages_file: str = "messages.csv"
    favorites_file: str = "favorites.csv"


@dataclass(slots=True)
class AppConfig:
    """Top-level configuration for the application."""

    environment: Literal["development", "production"] = "development"
    data_directory: Path = field(default_factory=lambda: Path("data"))
    storage: StorageConfig = field(default_factory=StorageConfig)

    def ensure_data_directories(self) -> None:
        """Create data directories required by the application."""

        self.data_directory.mkdir(parents=True, exist_ok=True)


DEFAULT_CONFIG = AppConfig()
