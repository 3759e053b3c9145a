#!/usr/bin/env python3
"""
Prepare donations data for mapping.

Data loading and preparation for the map of WA 2020 election donations:
creates the versioned output folders, downloads raw PDC donations data and
saves a prepared copy next to it.

The run steps through layout, query, fetch and prepare one call at a time
rather than going through ``load_prepare_donations_data``, so that the query
is built, and its state recorded, before any download starts.

Usage:
    python prepare_donations_data.py -r <repository> -v <version>
"""

from __future__ import annotations

import argparse
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
import yaml

from base_fetcher import build_get_query
from donations_data_fetcher import PDCDonationsFetcher
from donations_prep import prepare_and_save, rules_from_config
from output_layout import VersionedOutputLayout, resolve_layout
from pipeline_config import DEFAULT_CONFIG_FILENAME, PipelineConfig
from pipeline_errors import FilesystemError, PipelineError

LOGGER = logging.getLogger(__name__)


class PipelineState(Enum):
    INIT = "init"
    LAYOUT_RESOLVED = "layout_resolved"
    QUERY_BUILT = "query_built"
    RAW_FETCHED = "raw_fetched"
    PREPARED = "prepared"
    DONE = "done"


def read_api_token(token_path: str | Path) -> Optional[str]:
    """Return the API token stored in ``token_path``, or None if there is none."""
    token_path = Path(token_path)
    if not token_path.is_file():
        LOGGER.info("No API token file found; querying without a token")
        return None
    try:
        with open(token_path, "r", encoding="utf-8") as handle:
            first_line = handle.readline().strip()
    except (OSError, UnicodeDecodeError) as exc:
        raise FilesystemError(f"Could not read API token file {token_path}: {type(exc).__name__}") from exc
    if not first_line:
        LOGGER.warning("API token file %s is empty; querying without a token", token_path)
        return None
    LOGGER.info("Using API token from %s", token_path)
    return first_line


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class DonationsPipeline:
    """Runs layout -> query -> fetch -> prepare for one data version.

    Failures are not caught: the error propagates unchanged and ``state``
    tells how far the run got.  Files written before the failure are kept.
    """

    def __init__(self, fetcher: Optional[PDCDonationsFetcher] = None) -> None:
        self.fetcher = fetcher
        self.state = PipelineState.INIT
        self.layout: Optional[VersionedOutputLayout] = None
        self.query: Optional[str] = None
        self.history: List[PipelineState] = [PipelineState.INIT]

    def _advance(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)
        LOGGER.debug("Pipeline state: %s", state.value)

    def run(
        self,
        repository_path: str | Path,
        version_id: str,
        config: Union[PipelineConfig, Dict[str, Any]],
    ) -> pd.DataFrame:
        if not isinstance(config, PipelineConfig):
            config = PipelineConfig.from_dict(config)
        repository_path = Path(repository_path)
        self.state = PipelineState.INIT
        self.history = [PipelineState.INIT]

        LOGGER.info("Preparing donations data version %s", version_id)
        self.layout = resolve_layout(config.output_base_path(), version_id)
        self._advance(PipelineState.LAYOUT_RESOLVED)

        api_token = read_api_token(config.token_path(repository_path))
        self.query = build_get_query(
            base_url=config.urls.donations_api,
            params=config.urls.donations_api_params,
            api_token=api_token,
        )
        self._advance(PipelineState.QUERY_BUILT)

        fetcher = self.fetcher or PDCDonationsFetcher(
            timeout=config.http.timeout_seconds,
            chunk_size=config.http.chunk_size,
        )
        raw_path = self.layout.data_prep_dir / config.filenames.donations_raw
        donations_data_raw = fetcher.fetch_raw(self.query, raw_path)
        self._advance(PipelineState.RAW_FETCHED)

        prepped_path = self.layout.data_prep_dir / config.filenames.donations_prepped
        donations_prepped = prepare_and_save(
            donations_data_raw,
            prepped_path,
            rules=rules_from_config(config.prepare.as_dict()),
        )
        self._advance(PipelineState.PREPARED)

        # Population data and shapefiles are not prepared yet
        self._advance(PipelineState.DONE)
        LOGGER.info("Donations data version %s ready in %s", version_id, self.layout.output_dir)
        return donations_prepped


# ---------------------------------------------------------------------------
# Command line entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Prepare WA PDC donations data for mapping.")
    parser.add_argument("-r", "--repository", required=True, help="Repository filepath")
    parser.add_argument("-v", "--version", required=True, help="Data prep version")
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help=f"Config file (default: <repository>/{DEFAULT_CONFIG_FILENAME})",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    repository_path = Path(args.repository)
    config_path = Path(args.config) if args.config else repository_path / DEFAULT_CONFIG_FILENAME
    try:
        config = PipelineConfig.load(config_path)
    except (OSError, KeyError, yaml.YAMLError) as exc:
        LOGGER.error("Could not load config %s: %s", config_path, exc)
        return 1

    pipeline = DonationsPipeline()
    try:
        pipeline.run(repository_path, args.version, config)
    except PipelineError as exc:
        LOGGER.error("Pipeline failed after state '%s': %s", pipeline.state.value, exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
