"""Configuration management for circulation.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

DEFAULT_HOME = Path.home() / ".circulation"


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path
    db_timeout: float  # seconds to wait on a locked database

    # Lending rules
    loan_period_days: int
    max_renewals: int
    cas_retries: int

    # Cover uploads
    upload_dir: Path

    # Logging
    log_level: str

    # SMTP
    smtp_host: Optional[str]
    smtp_port: int
    smtp_user: Optional[str]
    smtp_password: Optional[str]
    smtp_sender: Optional[str]
    smtp_security: str  # starttls, ssl or none

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "CIRCULATION_DB_PATH",
            str(DEFAULT_HOME / "library.db"),
        )
        upload_dir_str = os.environ.get(
            "CIRCULATION_UPLOAD_DIR",
            str(DEFAULT_HOME / "covers"),
        )

        return cls(
            db_path=Path(db_path_str).expanduser(),
            db_timeout=float(os.environ.get("CIRCULATION_DB_TIMEOUT", "30")),
            loan_period_days=int(os.environ.get("CIRCULATION_LOAN_DAYS", "7")),
            max_renewals=int(os.environ.get("CIRCULATION_MAX_RENEWALS", "2")),
            cas_retries=int(os.environ.get("CIRCULATION_CAS_RETRIES", "5")),
            upload_dir=Path(upload_dir_str).expanduser(),
            log_level=os.environ.get("CIRCULATION_LOG_LEVEL", "WARNING").upper(),
            smtp_host=os.environ.get("SMTP_HOST"),
            smtp_port=int(os.environ.get("SMTP_PORT", "587")),
            smtp_user=os.environ.get("SMTP_USER"),
            smtp_password=os.environ.get("SMTP_PASSWORD"),
            smtp_sender=os.environ.get("SMTP_SENDER") or os.environ.get("SMTP_USER"),
            smtp_security=os.environ.get("SMTP_SECURITY", "starttls").lower(),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        for directory in (self.db_path.parent, self.upload_dir):
            if not directory.exists():
                try:
                    directory.mkdir(parents=True, exist_ok=True)
                except PermissionError:
                    errors.append(f"Cannot create directory: {directory}")

        if self.loan_period_days <= 0:
            errors.append("Loan period must be at least one day")
        if not 0 <= self.max_renewals <= 2:
            errors.append("Maximum renewals must be between 0 and 2")
        if self.cas_retries < 1:
            errors.append("CAS retry budget must be at least 1")
        if self.smtp_security not in ("starttls", "ssl", "none"):
            errors.append(f"Unknown SMTP security mode: {self.smtp_security}")

        return errors

    def has_smtp_config(self) -> bool:
        """Check if SMTP configuration is present."""
        return bool(self.smtp_host and self.smtp_sender)


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
