"""
Settings file loader.

Reads store, remote and paging configuration from a YAML file:

```yaml
store:
  db_path: ~/.notes-sync/notes.db
remote:
  base_url: https://api.example.com
  notes_path: /notes
  timeout_seconds: 10
paging:
  page_size: 5
  prefetch_distance: 1
  initial_load_size: 5
```

Every section is optional. A missing file yields the defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ValidationError
from .paging.config import PagingConfig
from .remote.http import HttpSourceConfig
from .store.sqlite import SQLiteStoreConfig

DEFAULT_SETTINGS_PATH = Path.home() / ".notes-sync" / "settings.yaml"


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ValidationError(name, "section must be a mapping")
    return section


def _build(cls: type, section: dict[str, Any], name: str) -> Any:
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValidationError(name, f"unknown keys: {', '.join(unknown)}")
    try:
        return cls(**section)
    except TypeError as e:
        raise ValidationError(name, str(e)) from e


@dataclass
class Settings:
    """All configuration needed to build a notes repository."""

    store: SQLiteStoreConfig = field(default_factory=SQLiteStoreConfig)
    paging: PagingConfig = field(default_factory=PagingConfig)
    remote: HttpSourceConfig | None = None

    @classmethod
    def load(cls, path: Path | None = None) -> Settings:
        """Load settings from YAML, falling back to defaults."""
        path = path or DEFAULT_SETTINGS_PATH
        if not path.exists():
            return cls()

        try:
            config = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ValidationError(str(path), f"invalid YAML: {e}") from e
        if not isinstance(config, dict):
            raise ValidationError(str(path), "top level must be a mapping")

        store_section = _section(config, "store")
        if "db_path" in store_section:
            store_section["db_path"] = str(Path(store_section["db_path"]).expanduser())

        remote_section = _section(config, "remote")
        return cls(
            store=_build(SQLiteStoreConfig, store_section, "store"),
            paging=_build(PagingConfig, _section(config, "paging"), "paging"),
            remote=_build(HttpSourceConfig, remote_section, "remote") if remote_section else None,
        )
