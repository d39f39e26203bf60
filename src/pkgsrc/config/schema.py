"""
Pydantic models for pkgsrc configuration.

Defines all configuration schemas using Pydantic v2 for validation,
defaults, and serialization.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class TreeConfig(BaseModel):
    """Location and layout of the pkgsrc tree."""

    root: Path | None = Field(
        default=None,
        description="Absolute path of the pkgsrc checkout (normally taken from PKGSRCLOC).",
    )
    cache_file: str = Field(
        default=".pkgsrc-index.json",
        description="Index cache filename, stored at the tree root.",
    )
    descr_file: str = Field(
        default="DESCR",
        description="File whose presence marks a package directory.",
    )
    max_descr_bytes: int = Field(default=4096, gt=0)

    model_config = {"extra": "forbid"}

    @field_validator("root")
    @classmethod
    def root_must_be_absolute(cls, v: Path | None) -> Path | None:
        if v is None:
            return v
        v = v.expanduser()
        if not v.is_absolute():
            raise ValueError(f"pkgsrc root must be an absolute path, got '{v}'")
        return v

    @field_validator("cache_file", "descr_file")
    @classmethod
    def plain_filename(cls, v: str) -> str:
        if not v or "/" in v:
            raise ValueError(f"expected a plain filename, got '{v}'")
        return v


class BuildConfig(BaseModel):
    """External tools used for install and uninstall."""

    make: str = "bmake"
    uninstall: str = "pkg_delete"

    model_config = {"extra": "forbid"}


class SearchConfig(BaseModel):
    """Search output behaviour."""

    unique: bool = Field(
        default=False,
        description="Print each matching package once, even if several terms match it.",
    )

    model_config = {"extra": "forbid"}


class LoggingConfig(BaseModel):
    """Logging system configuration."""

    level: Literal["debug", "info", "human", "warn", "error"] = "human"
    file: Path | None = None
    verbose: int = 0

    model_config = {"extra": "forbid"}


class AppConfig(BaseModel):
    """Complete application configuration.

    This is the root of the configuration tree. It combines all sections
    and is the entry point for validation.
    """

    pkgsrc: TreeConfig = Field(default_factory=TreeConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "forbid"}
