"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from enum import Enum
from pathlib import Path
from typing import List

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import Consultant


def _parse_clock(value: str) -> time:
    try:
        hour, minute = (int(part) for part in value.split(":"))
        return time(hour=hour, minute=minute)
    except ValueError:
        raise ValueError(f"Time must be given as HH:MM, got '{value}'") from None


class SyncFallback(str, Enum):
    """What to do when live calendar data is unavailable."""
    SYNTHETIC = "synthetic"  # install synthetic busy blocks
    STRICT = "strict"  # raise and keep the last good sync


class SyncConfig(BaseModel):
    """External calendar sync settings."""
    fallback: SyncFallback = SyncFallback.SYNTHETIC
    fetch_timeout_seconds: float = 15
    http_timeout_seconds: float = 10
    lookback_days: int = 7
    lookahead_days: int = 28
    synthetic_weeks: int = 4

    @field_validator("fetch_timeout_seconds", "http_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """Ensure timeouts are positive."""
        if value <= 0:
            raise ValueError("timeouts must be greater than zero")
        return value

    @field_validator("lookback_days", "lookahead_days", "synthetic_weeks")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("day and week counts must not be negative")
        return value


class StorageConfig(BaseModel):
    """Where state and fallback credentials live."""
    data_dir: Path = Path("~/.agendaguard")
    use_keyring: bool = True

    def resolved_data_dir(self) -> Path:
        return self.data_dir.expanduser()

    def credential_file(self) -> Path:
        return self.resolved_data_dir() / "credentials.json"


class ConsultantConfig(BaseModel):
    """Consultant roster entry."""
    id: str
    name: str
    email: str
    title: str = ""
    color: str = "#6366f1"
    work_start: str = "08:00"
    work_end: str = "18:00"
    work_days: List[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4])  # Monday - Friday

    @field_validator("work_start", "work_end")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        """Validate HH:MM format and range."""
        parsed = _parse_clock(value)
        return parsed.strftime("%H:%M")

    @field_validator("work_days")
    @classmethod
    def validate_work_days(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"work_days must be between 0 and 6, got {invalid_days}")
        return sorted(set(value))

    @model_validator(mode="after")
    def validate_window_order(self) -> "ConsultantConfig":
        """Ensure the working window opens before it closes."""
        if _parse_clock(self.work_end) <= _parse_clock(self.work_start):
            raise ValueError(f"work_end must be later than work_start for consultant {self.name}")
        return self

    def to_consultant(self) -> Consultant:
        return Consultant(
            id=self.id,
            name=self.name,
            email=self.email,
            title=self.title,
            color=self.color,
            work_start=_parse_clock(self.work_start),
            work_end=_parse_clock(self.work_end),
            work_days=frozenset(self.work_days),
        )


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "America/Sao_Paulo"
    storage: StorageConfig = Field(default_factory=StorageConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    consultants: List[ConsultantConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("consultants")
    @classmethod
    def validate_consultants(cls, value: List[ConsultantConfig]) -> List[ConsultantConfig]:
        """Ensure consultant ids and emails are unique."""
        seen_ids: set[str] = set()
        seen_emails: set[str] = set()
        for consultant in value:
            email_key = consultant.email.lower()
            if consultant.id in seen_ids:
                raise ValueError(f"Duplicate consultant id detected: {consultant.id}")
            if email_key in seen_emails:
                raise ValueError(f"Duplicate consultant email detected: {consultant.email}")
            seen_ids.add(consultant.id)
            seen_emails.add(email_key)
        return value

    def roster(self) -> List[Consultant]:
        """Return the configured consultants as domain objects."""
        return [consultant.to_consultant() for consultant in self.consultants]

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
