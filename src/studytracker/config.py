"""Configuration management for studytracker.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

DEFAULT_HOME = Path.home() / ".studytracker"


@dataclass
class Config:
    """Application configuration."""

    # Document store
    db_path: Path

    # Signed-in principal for local use
    user_id: Optional[str]

    # Google Drive
    google_client_id: Optional[str]
    google_client_secret: Optional[str]
    google_api_key: Optional[str]
    google_token_path: Path

    # Backups
    backup_prefix: str
    backup_retention: int

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "STUDYTRACKER_DB_PATH",
            str(DEFAULT_HOME / "studytracker.db"),
        )
        token_path_str = os.environ.get(
            "STUDYTRACKER_GDRIVE_TOKEN",
            str(DEFAULT_HOME / "gdrive_token.json"),
        )

        return cls(
            db_path=Path(db_path_str).expanduser(),
            user_id=os.environ.get("STUDYTRACKER_USER_ID") or None,
            google_client_id=os.environ.get("GOOGLE_DRIVE_CLIENT_ID"),
            google_client_secret=os.environ.get("GOOGLE_DRIVE_CLIENT_SECRET"),
            google_api_key=os.environ.get("GOOGLE_DRIVE_API_KEY"),
            google_token_path=Path(token_path_str).expanduser(),
            backup_prefix=os.environ.get("STUDYTRACKER_BACKUP_PREFIX", "echoes_backup"),
            backup_retention=int(os.environ.get("STUDYTRACKER_BACKUP_RETENTION", "10")),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        # Check database directory is writable
        if not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if not self.backup_prefix:
            errors.append("STUDYTRACKER_BACKUP_PREFIX must not be empty")

        if self.backup_retention < 1:
            errors.append("STUDYTRACKER_BACKUP_RETENTION must be at least 1")

        return errors

    def has_drive_config(self) -> bool:
        """Check if Google Drive OAuth client configuration is present."""
        return bool(self.google_client_id and self.google_client_secret)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
