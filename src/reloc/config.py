"""Configuration models for reloc."""

from pathlib import Path

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from reloc.errors import ConfigError
from reloc.rebaser.uris import has_scheme, to_local_uri


DEFAULT_INDEX_DENY = [
    ".git/**",
    "**/.git/**",
    "**/__pycache__/**",
    "**/node_modules/**",
    ".reloc/**",
]


class RebaserConfig(BaseModel):
    """URI rebasing configuration."""

    uri_bases: list[str] = []  # Local roots tried by the base strategies, in order
    case_sensitive: bool | None = None  # None: follow the platform
    workspace: str | None = None  # Local root indexed for distinct file names
    index_deny: list[str] = DEFAULT_INDEX_DENY

    @field_validator("uri_bases")
    @classmethod
    def validate_uri_bases(cls, v: list[str]) -> list[str]:
        # Relative paths stay as written; the session roots them.
        bases = []
        for base in v:
            base = base.strip()
            if not base:
                continue
            if has_scheme(base) or Path(base).expanduser().is_absolute():
                base = to_local_uri(base)
            bases.append(base)
        return bases


class DiagnosticsConfig(BaseModel):
    """Problem list configuration."""

    max_per_file: int = 250

    @field_validator("max_per_file")
    @classmethod
    def validate_max_per_file(cls, v: int) -> int:
        if v < 2:
            raise ValueError("diagnostics.max_per_file must be at least 2")
        return v


class CacheConfig(BaseModel):
    """Persistence of learned base URIs."""

    enabled: bool = True
    path: str = ".reloc/bases.db"


class RelocConfig(BaseModel):
    """Main reloc configuration."""

    rebaser: RebaserConfig = RebaserConfig()
    diagnostics: DiagnosticsConfig = DiagnosticsConfig()
    cache: CacheConfig = CacheConfig()


def load_config(path: Path) -> RelocConfig:
    """Load configuration from YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read {path}: {e}")

    try:
        return RelocConfig(**(data or {}))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}")


def get_config_template() -> str:
    """Get the default configuration template."""
    return """# reloc configuration

rebaser:
  # Local roots to try when an artifact path from the log does not exist here.
  # Plain paths and file: URIs are both accepted. Tried in order.
  uri_bases: []
  #   - ~/src/my-project
  #   - file:///home/me/checkout

  # null follows the platform (case-insensitive on Windows and macOS).
  case_sensitive: null

  # Optional local root indexed by file name. A file name that occurs once in
  # the workspace and once in the log is matched automatically.
  # workspace: .
  index_deny:
    - ".git/**"
    - "**/.git/**"
    - "**/__pycache__/**"
    - "**/node_modules/**"
    - ".reloc/**"

diagnostics:
  # Per-file ceiling of the problem list. Larger files show a notice first.
  max_per_file: 250

cache:
  # Learned base pairs are kept here and reused by later sessions.
  enabled: true
  path: .reloc/bases.db
"""
