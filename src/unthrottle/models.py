#!/usr/bin/env python3
"""
Data models for disk throttle snapshots and the backup throttle profile.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from unthrottle.errors import ProfileError

_FORBIDDEN_KEY_CHARS = set(",=: \t\n")
_FORBIDDEN_VALUE_CHARS = set(", \t\n")


@dataclass(frozen=True)
class OptionToken:
    """A single ``key[=value]`` entry of a disk option string."""

    key: str
    value: Optional[str] = None

    def __str__(self) -> str:
        if self.value is None:
            return self.key
        return f"{self.key}={self.value}"


@dataclass(frozen=True)
class DiskRecord:
    """One disk attachment of a VM, e.g. ``scsi0``, with its options."""

    slot_id: str
    options: Tuple[OptionToken, ...] = ()

    @property
    def keys(self) -> List[str]:
        return [token.key for token in self.options]

    @property
    def option_string(self) -> str:
        return ",".join(str(token) for token in self.options)

    def to_line(self) -> str:
        """Text form used in snapshot files: ``<slot_id>:<options>``."""
        return f"{self.slot_id}:{self.option_string}"

    def __str__(self) -> str:
        return self.to_line()


@dataclass(frozen=True)
class ThrottleSnapshot:
    """Disk records of one VM as they were before throttling was changed."""

    vmid: str
    records: Tuple[DiskRecord, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return bool(self.records)

    def __iter__(self) -> Iterator[DiskRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records

    def to_text(self) -> str:
        """One record per line, newline terminated."""
        return "".join(f"{record.to_line()}\n" for record in self.records)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "vmid": self.vmid,
            "records": [
                {"slot_id": record.slot_id, "options": record.option_string}
                for record in self.records
            ],
        }


class BackupThrottleProfile(BaseModel):
    """Throttle values to apply while a backup runs.

    An empty profile means throttling is removed rather than replaced.
    The YAML file may be a flat mapping or nested under ``throttle:``::

        throttle:
          iops_rd_max: 10000
          mbps_rd: 400
    """

    limits: Dict[str, str] = Field(default_factory=dict, description="key -> value")

    @model_validator(mode="before")
    @classmethod
    def handle_flat_mapping(cls, data: Any) -> Any:
        """Accept a bare mapping or one nested under ``throttle``."""
        if data is None:
            return {"limits": {}}
        if isinstance(data, dict):
            if "limits" in data:
                return data
            if "throttle" in data:
                return {"limits": data["throttle"] or {}}
            return {"limits": data}
        return data

    @field_validator("limits", mode="before")
    @classmethod
    def values_to_strings(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            raise ValueError("throttle profile must be a mapping of key to value")
        limits = {}
        for key, value in v.items():
            if isinstance(value, bool) or value is None or isinstance(value, (list, dict)):
                raise ValueError(f"invalid value for '{key}': {value!r}")
            limits[str(key)] = str(value)
        return limits

    @field_validator("limits")
    @classmethod
    def tokens_must_be_valid(cls, v: Dict[str, str]) -> Dict[str, str]:
        for key, value in v.items():
            if not key or _FORBIDDEN_KEY_CHARS & set(key):
                raise ValueError(f"invalid throttle key: {key!r}")
            if not value or _FORBIDDEN_VALUE_CHARS & set(value):
                raise ValueError(f"invalid value for '{key}': {value!r}")
        return v

    @property
    def is_empty(self) -> bool:
        return not self.limits

    def items(self) -> List[Tuple[str, str]]:
        return list(self.limits.items())

    @classmethod
    def load(cls, path: Path) -> "BackupThrottleProfile":
        """Load a profile from a YAML file."""
        try:
            data = yaml.safe_load(path.read_text())
        except (OSError, yaml.YAMLError) as e:
            raise ProfileError(f"Failed to read throttle profile {path}: {e}")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ProfileError(f"Invalid throttle profile {path}: {e}")


def load_profile(path: Path) -> Optional[BackupThrottleProfile]:
    """Load the profile at *path*, or None if there is no such file."""
    if not path.exists():
        return None
    return BackupThrottleProfile.load(path)
