"""Configuration for stack audits."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

DEFAULT_PROFILES = ["deployTools"]
DEFAULT_REGIONS = ["eu-west-1"]
DEFAULT_PROVENANCE_TAG_KEY = "gu:cdk:version"


def _split_env(name: str) -> Optional[list[str]]:
    raw = os.environ.get(name)
    if not raw:
        return None
    return [item.strip() for item in raw.split(",") if item.strip()]


def _as_list(value: Any) -> Optional[list[str]]:
    """Accept either a single value or a list of values."""
    if value is None or value == []:
        return None
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return [str(value)]


def _env_flag(name: str) -> Optional[bool]:
    raw = os.environ.get(name)
    if raw is None:
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AuditConfig:
    """Settings shared by the enumerator, rule catalog and reporters."""

    # Accounts and regions to audit
    profiles: list[str] = field(default_factory=lambda: list(DEFAULT_PROFILES))
    regions: list[str] = field(default_factory=lambda: list(DEFAULT_REGIONS))

    # Tag marking resources produced by the standard CDK toolchain
    provenance_tag_key: str = DEFAULT_PROVENANCE_TAG_KEY

    # AWS SDK retry behaviour
    sdk_max_attempts: int = 10

    # Output locations
    csv_output_dir: str = "output/data"
    template_output_dir: str = "output/templates"

    # Read templates from template_output_dir instead of the API when present
    prefer_cache: bool = False

    # Rule ids to leave out of the catalog
    disabled_rules: list[str] = field(default_factory=list)

    # Concurrent (profile, region) pipelines
    max_workers: int = 4

    log_level: str = "info"

    @classmethod
    def from_dict(cls, data: dict) -> "AuditConfig":
        """Create config from dictionary, falling back to the environment."""
        prefer_cache = data.get("prefer_cache")
        if prefer_cache is None:
            prefer_cache = _env_flag("STACK_AUDIT_PREFER_CACHE") or False

        return cls(
            profiles=list(
                _as_list(data.get("profiles"))
                or _split_env("STACK_AUDIT_PROFILES")
                or DEFAULT_PROFILES
            ),
            regions=list(
                _as_list(data.get("regions"))
                or _split_env("STACK_AUDIT_REGIONS")
                or DEFAULT_REGIONS
            ),
            provenance_tag_key=data.get("provenance_tag_key", DEFAULT_PROVENANCE_TAG_KEY),
            sdk_max_attempts=int(data.get("sdk_max_attempts", 10)),
            csv_output_dir=data.get("csv_output_dir", "output/data"),
            template_output_dir=data.get("template_output_dir", "output/templates"),
            prefer_cache=bool(prefer_cache),
            disabled_rules=_as_list(data.get("disabled_rules")) or [],
            max_workers=int(data.get("max_workers", 4)),
            log_level=data.get("log_level", "info"),
        )

    @classmethod
    def load(cls, path: Path) -> "AuditConfig":
        """Load config from a YAML file.

        Raises:
            ValueError: If the file does not contain a mapping.
        """
        content = Path(path).read_text(encoding="utf-8")
        data = yaml.safe_load(content) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "profiles": self.profiles,
            "regions": self.regions,
            "provenance_tag_key": self.provenance_tag_key,
            "sdk_max_attempts": self.sdk_max_attempts,
            "csv_output_dir": self.csv_output_dir,
            "template_output_dir": self.template_output_dir,
            "prefer_cache": self.prefer_cache,
            "disabled_rules": self.disabled_rules,
            "max_workers": self.max_workers,
            "log_level": self.log_level,
        }

    def pairs(self) -> list[tuple[str, str]]:
        """Every (profile, region) pair to audit."""
        return [(profile, region) for profile in self.profiles for region in self.regions]
