"""Configuration validation models using Pydantic."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..ingestion.context import ImportContext
from ..ingestion.header_mapper import FIELD_ALIASES
from ..models import Half
from ..vocabulary import CATEGORY_LIST, TEAM_LIST


class PathsConfig(BaseModel):
    """Filesystem locations used by the CLI."""

    logs_dir: str = Field("logs", description="Directory for system/user logs")
    records_store: str = Field("data/records.json", description="JSON record store")
    reports_dir: str = Field("data/reports", description="Where import reports are written")


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file_name: str = "system.log"


class ImportDefaults(BaseModel):
    """Session defaults and input ceilings."""

    default_year: Optional[int] = Field(None, ge=1900, le=2999)
    default_half: Optional[Literal["H1", "H2"]] = None
    default_team: Optional[str] = None
    allow_negative_amounts: bool = False
    max_rows: int = Field(50_000, ge=1, description="Row ceiling per upload")
    max_file_size_mb: float = Field(25, gt=0, description="File size ceiling per upload")

    @field_validator("default_half", mode="before")
    @classmethod
    def upper_half(cls, v):
        """Accept h1/h2 in any case."""
        if isinstance(v, str):
            return v.strip().upper() or None
        return v


class VocabularyConfig(BaseModel):
    categories: List[str] = Field(default_factory=lambda: list(CATEGORY_LIST), min_length=1)
    teams: List[str] = Field(default_factory=lambda: list(TEAM_LIST), min_length=1)

    @field_validator("categories", "teams")
    @classmethod
    def validate_entries(cls, v):
        """Strip entries and reject blanks and case-insensitive duplicates."""
        cleaned = [str(item).strip() for item in v]
        if any(not item for item in cleaned):
            raise ValueError("vocabulary entries must be non-empty")
        lowered = [item.lower() for item in cleaned]
        if len(set(lowered)) != len(lowered):
            raise ValueError("vocabulary entries must be unique (case-insensitive)")
        return cleaned


class ImportSettings(BaseModel):
    """Complete import configuration."""

    model_config = ConfigDict(populate_by_name=True)

    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    import_: ImportDefaults = Field(default_factory=ImportDefaults, alias="import")
    vocabulary: VocabularyConfig = Field(default_factory=VocabularyConfig)
    aliases: Dict[str, List[str]] = Field(default_factory=dict, description="Extra header aliases per field")

    @field_validator("aliases")
    @classmethod
    def validate_aliases(cls, v):
        unknown = sorted(set(v) - set(FIELD_ALIASES))
        if unknown:
            raise ValueError(f"aliases for unknown fields: {', '.join(unknown)}")
        return v

    @model_validator(mode="after")
    def validate_default_team(self):
        """Default team must be one of the configured teams; stored in canonical case."""
        team = self.import_.default_team
        if team is None or not team.strip():
            self.import_.default_team = None
            return self
        for entry in self.vocabulary.teams:
            if entry.lower() == team.strip().lower():
                self.import_.default_team = entry
                return self
        raise ValueError(f"default_team {team!r} is not in the team vocabulary")

    def to_context(self) -> ImportContext:
        d = self.import_
        return ImportContext(
            categories=tuple(self.vocabulary.categories),
            teams=tuple(self.vocabulary.teams),
            default_year=d.default_year,
            default_half=Half(d.default_half) if d.default_half else None,
            default_team=d.default_team,
            allow_negative_amounts=d.allow_negative_amounts,
            max_rows=d.max_rows,
            max_file_size_bytes=int(d.max_file_size_mb * 1024 * 1024),
            extra_aliases={k: tuple(v) for k, v in self.aliases.items()},
        )


def load_config(path: str | Path) -> Dict:
    """Load a YAML configuration file."""

    with open(path, "r", encoding="utf-8") as stream:
        return yaml.safe_load(stream) or {}


def load_and_validate_config(config_dict: dict) -> ImportSettings:
    """
    Load and validate import configuration.

    Handles both the sectioned format and the older flat format where
    ``categories``/``teams`` and the session defaults sit at the top level.

    Args:
        config_dict: Dictionary with import configuration

    Returns:
        Validated ImportSettings object

    Raises:
        ValidationError: If configuration is invalid
    """
    config_dict = dict(config_dict or {})

    if "vocabulary" not in config_dict and ("categories" in config_dict or "teams" in config_dict):
        vocab = {}
        for key in ("categories", "teams"):
            if key in config_dict:
                vocab[key] = config_dict.pop(key)
        config_dict["vocabulary"] = vocab

    legacy_keys = [k for k in ImportDefaults.model_fields if k in config_dict]
    if legacy_keys and "import" not in config_dict:
        config_dict["import"] = {k: config_dict.pop(k) for k in legacy_keys}

    return ImportSettings.model_validate(config_dict)


def load_settings(path: Optional[str | Path]) -> ImportSettings:
    """Settings from a YAML file, or defaults when ``path`` is None."""

    if path is None:
        return ImportSettings()
    return load_and_validate_config(load_config(path))
