#!/usr/bin/env python3
"""
Configuration for the donations data-prep pipeline.

The YAML file is read once per run into plain dataclasses; nothing here is
module-level state.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "config.yaml"


def _resolve_path(path: str | Path, relative_to: Optional[Path] = None) -> Path:
    """Expand ``~`` and environment variables, anchoring relative paths."""

    expanded = Path(os.path.expandvars(os.path.expanduser(str(path))))
    if relative_to is not None and not expanded.is_absolute():
        expanded = Path(relative_to) / expanded
    return expanded


def _require(section: Dict[str, Any], key: str, prefix: str) -> Any:
    if key not in section or section[key] is None:
        raise KeyError(f"Missing required config key '{prefix}{key}'")
    return section[key]


@dataclass
class UrlConfig:
    """API endpoint and its ordered GET parameters."""

    donations_api: str
    donations_api_params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FilenameConfig:
    """File names, relative to the repository or the data prep folder."""

    pdc_api_token: str
    donations_raw: str
    donations_prepped: str


@dataclass
class HttpConfig:
    timeout_seconds: float = 120
    chunk_size: int = 65536


@dataclass
class PrepareConfig:
    """Optional transform rules; the defaults leave the data unchanged."""

    rename_columns: Dict[str, str] = field(default_factory=dict)
    drop_duplicates: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {"rename_columns": dict(self.rename_columns), "drop_duplicates": self.drop_duplicates}


@dataclass
class PipelineConfig:
    """Aggregate configuration for one pipeline run."""

    output_dir_base: str
    urls: UrlConfig
    filenames: FilenameConfig
    http: HttpConfig = field(default_factory=HttpConfig)
    prepare: PrepareConfig = field(default_factory=PrepareConfig)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PipelineConfig":
        raw = raw or {}
        url_cfg = raw.get("urls") or {}
        file_cfg = raw.get("filenames") or {}
        http_cfg = raw.get("http") or {}
        prepare_cfg = raw.get("prepare") or {}

        return cls(
            output_dir_base=str(_require(raw, "output_dir_base", "")),
            urls=UrlConfig(
                donations_api=str(_require(url_cfg, "donations_api", "urls.")),
                # dict keeps the YAML mapping order, which fixes the query order
                donations_api_params=dict(url_cfg.get("donations_api_params") or {}),
            ),
            filenames=FilenameConfig(
                pdc_api_token=str(_require(file_cfg, "pdc_api_token", "filenames.")),
                donations_raw=str(_require(file_cfg, "donations_raw", "filenames.")),
                donations_prepped=str(_require(file_cfg, "donations_prepped", "filenames.")),
            ),
            http=HttpConfig(
                timeout_seconds=float(http_cfg.get("timeout_seconds", 120)),
                chunk_size=int(http_cfg.get("chunk_size", 65536)),
            ),
            prepare=PrepareConfig(
                rename_columns=dict(prepare_cfg.get("rename_columns") or {}),
                drop_duplicates=bool(prepare_cfg.get("drop_duplicates", False)),
            ),
        )

    @classmethod
    def load(cls, path: str | Path) -> "PipelineConfig":
        with open(path, "r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        LOGGER.debug("Loaded pipeline config from %s", path)
        return cls.from_dict(raw)

    def output_base_path(self) -> Path:
        # relative paths resolve against the working directory
        return _resolve_path(self.output_dir_base)

    def token_path(self, repository_path: str | Path) -> Path:
        return _resolve_path(self.filenames.pdc_api_token, relative_to=Path(repository_path))
