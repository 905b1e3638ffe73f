"""
Issuance settings supplied by the command line or a library caller.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, List, NamedTuple, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from selfca.errors import InvalidRequestError
from selfca.model import DEFAULT_KEY_BITS
from selfca.util.logging import parse_log_level

ENV_VAR_OUTPUT_DIR = "SELFCA_OUTPUT_DIR"
ENV_VAR_LOG_LEVEL = "SELFCA_LOG_LEVEL"

DEFAULT_OUTPUT_DIR = "cert"
DEFAULT_LOG_LEVEL = "warning"
DEFAULT_DAYS = 365
DEFAULT_CA_DAYS = 10 * 365

START_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Stage reported when a field fails validation
_FIELD_STAGES = {
    "hosts": "parse hosts parameter",
    "not_before": "parse valid from parameter",
    "not_after": "parse valid until parameter",
}


def parse_hosts(value: Any) -> List[str]:
    """Split a comma-separated host string (or list of them), trimming and dropping empties."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    hosts = []
    for item in value:
        for part in str(item).split(","):
            part = part.strip()
            if part:
                hosts.append(part)
    return hosts


def parse_start_time(value: str) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM:SS`` as a UTC timestamp."""
    try:
        return datetime.strptime(value.strip(), START_TIME_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError as e:
        raise ValueError(f"expected format YYYY-MM-DD HH:MM:SS, got {value!r}") from e


class ValidityWindows(NamedTuple):
    not_before: datetime
    not_after: datetime
    ca_not_after: datetime


class IssuanceSettings(BaseModel):
    """Validated inputs for one run of the CA-reuse workflow."""

    hosts: List[str] = Field(..., description="DNS names or IP addresses; the first names the leaf files")
    common_name: Optional[str] = Field(None, description="Leaf subject common name override")
    key_bits: int = Field(DEFAULT_KEY_BITS, description="RSA key size for the CA and the leaf")
    not_before: Optional[datetime] = Field(None, description="Start of validity; defaults to now")
    days: int = Field(DEFAULT_DAYS, description="Leaf validity in days from not_before")
    not_after: Optional[datetime] = Field(None, description="Explicit end of leaf validity; overrides days")
    ca_days: int = Field(DEFAULT_CA_DAYS, description="Validity in days of a newly created CA")
    output_dir: Path = Field(
        default_factory=lambda: Path(os.getenv(ENV_VAR_OUTPUT_DIR) or DEFAULT_OUTPUT_DIR),
        description="Folder holding the CA and leaf files",
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv(ENV_VAR_LOG_LEVEL) or DEFAULT_LOG_LEVEL,
        description="Log level for the selfca logger",
        validate_default=True,
    )

    @field_validator("hosts", mode="before")
    @classmethod
    def _split_hosts(cls, value: Any) -> List[str]:
        hosts = parse_hosts(value)
        if not hosts:
            raise ValueError("at least one host is required")
        return hosts

    @field_validator("common_name", mode="before")
    @classmethod
    def _blank_common_name(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("key_bits", mode="before")
    @classmethod
    def _default_key_bits(cls, value: Any) -> Any:
        if value is None or (isinstance(value, int) and value <= 0):
            return DEFAULT_KEY_BITS
        return value

    @field_validator("not_before", "not_after", mode="before")
    @classmethod
    def _parse_time(cls, value: Any) -> Any:
        if isinstance(value, str):
            if not value.strip():
                return None
            return parse_start_time(value)
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _known_log_level(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_LOG_LEVEL
        parse_log_level(str(value))
        return str(value).strip().lower()

    @field_validator("output_dir", mode="before")
    @classmethod
    def _default_output_dir(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return Path(DEFAULT_OUTPUT_DIR)
        return value

    @classmethod
    def from_options(cls, **options: Any) -> IssuanceSettings:
        """
        Build settings from keyword options, dropping options left as None.

        Raises:
            InvalidRequestError: If any option fails validation. The error stage
                names the offending parameter.
        """
        try:
            return cls(**{key: value for key, value in options.items() if value is not None})
        except ValidationError as e:
            first = e.errors()[0]
            field = str(first["loc"][0]) if first.get("loc") else ""
            stage = _FIELD_STAGES.get(field, f"validate {field or 'settings'}")
            raise InvalidRequestError(first["msg"], stage=stage) from e

    def validity_windows(self, now: Optional[datetime] = None) -> ValidityWindows:
        """Resolve the leaf and new-CA validity windows, defaulting the start to ``now``."""
        not_before = self.not_before or now or datetime.now(timezone.utc)
        if not_before.tzinfo is None:
            not_before = not_before.replace(tzinfo=timezone.utc)

        not_after = self.not_after or not_before + timedelta(days=self.days)
        if not_after.tzinfo is None:
            not_after = not_after.replace(tzinfo=timezone.utc)

        return ValidityWindows(
            not_before=not_before,
            not_after=not_after,
            ca_not_after=not_before + timedelta(days=self.ca_days),
        )
