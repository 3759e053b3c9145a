#!/usr/bin/env python3
"""
Versioned output layout.

Every pipeline run writes into ``<output_dir_base>/<version>/`` which holds a
``data_prep`` folder for intermediate tables and a ``map`` folder for the data
consumed by the map front end.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from pipeline_errors import FilesystemError

LOGGER = logging.getLogger(__name__)

DATA_PREP_SUBDIR = "data_prep"
MAP_SUBDIR = "map"


@dataclass(frozen=True)
class VersionedOutputLayout:
    """Paths of one versioned output directory."""

    output_dir: Path
    data_prep_dir: Path
    map_dir: Path

    def as_dict(self) -> Dict[str, Path]:
        return {
            "output_dir": self.output_dir,
            "data_prep_dir": self.data_prep_dir,
            "map_dir": self.map_dir,
        }


def _check_version_id(version_id: str) -> None:
    """A version id has to be a single, non-special path segment."""
    if not isinstance(version_id, str) or not version_id.strip():
        raise FilesystemError(f"Invalid data version: {version_id!r}")
    if version_id in (".", "..") or "/" in version_id or "\\" in version_id or "\x00" in version_id:
        raise FilesystemError(f"Data version must be a single path segment: {version_id!r}")


def resolve_layout(base_dir, version_id: str) -> VersionedOutputLayout:
    """Create (if needed) and return the versioned output folders.

    Existing folders are left untouched, so calling this repeatedly with the
    same arguments is safe.
    """
    _check_version_id(version_id)
    output_dir = Path(base_dir) / version_id
    layout = VersionedOutputLayout(
        output_dir=output_dir,
        data_prep_dir=output_dir / DATA_PREP_SUBDIR,
        map_dir=output_dir / MAP_SUBDIR,
    )

    for directory in layout.as_dict().values():
        if directory.exists() and not directory.is_dir():
            raise FilesystemError(f"Output path exists and is not a directory: {directory}")
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError(f"Could not create output directory {directory}: {exc}") from exc

    LOGGER.debug("Resolved output layout for version %s at %s", version_id, output_dir)
    return layout
