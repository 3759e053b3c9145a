#!/usr/bin/env python3
"""
Preparation of PDC donations data for the donations map.

The raw table is never modified: preparation works on a deep copy and then
applies any configured transform rules in order.  With no rules the prepared
table is a structural copy of the raw one.
"""

import logging
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Sequence

import pandas as pd

from pipeline_errors import FilesystemError

LOGGER = logging.getLogger(__name__)

TransformRule = Callable[[pd.DataFrame], pd.DataFrame]


# ----------------------------------------------------------------------
# Transform rules
# ----------------------------------------------------------------------

def rename_columns(mapping: Mapping[str, str]) -> TransformRule:
    """Rule that renames columns in place of their old names (order is kept)."""
    mapping = dict(mapping)

    def _rule(df: pd.DataFrame) -> pd.DataFrame:
        missing = [col for col in mapping if col not in df.columns]
        if missing:
            LOGGER.warning("Columns to rename not found in donations data: %s", missing)
        return df.rename(columns=mapping)

    return _rule


def drop_duplicate_rows() -> TransformRule:
    def _rule(df: pd.DataFrame) -> pd.DataFrame:
        initial_count = len(df)
        deduped = df.drop_duplicates().reset_index(drop=True)
        if len(deduped) != initial_count:
            LOGGER.info("Removed %s duplicate records", f"{initial_count - len(deduped):,}")
        return deduped

    return _rule


def rules_from_config(prepare_config: Optional[Mapping[str, Any]]) -> List[TransformRule]:
    """Build the transform rules switched on in the ``prepare`` config section."""
    if not prepare_config:
        return []
    rules = []
    renames = prepare_config.get("rename_columns") or {}
    if renames:
        rules.append(rename_columns(renames))
    if prepare_config.get("drop_duplicates", False):
        rules.append(drop_duplicate_rows())
    return rules


# ----------------------------------------------------------------------
# Prepare and save
# ----------------------------------------------------------------------

def prepare_donations_data(
    donations_data_raw: pd.DataFrame,
    rules: Sequence[TransformRule] = (),
) -> pd.DataFrame:
    prepared = donations_data_raw.copy(deep=True)
    for rule in rules:
        prepared = rule(prepared)
    return prepared


def save_table(df: pd.DataFrame, filepath) -> Path:
    """Write a table as UTF-8 CSV with a header row and no index."""
    filepath = Path(filepath)
    if not filepath.parent.is_dir():
        raise FilesystemError(f"Output folder does not exist: {filepath.parent}")
    try:
        df.to_csv(filepath, index=False, encoding="utf-8")
    except OSError as exc:
        raise FilesystemError(f"Could not write {filepath}: {exc}") from exc
    return filepath


def prepare_and_save(
    donations_data_raw: pd.DataFrame,
    prepped_data_filepath,
    rules: Sequence[TransformRule] = (),
) -> pd.DataFrame:
    """Prepare raw donations data and save the result to CSV.

    Args:
        donations_data_raw: Raw donations table as returned by the fetcher
        prepped_data_filepath: Where the prepared CSV is written; its folder
            must already exist
        rules: Optional transform rules applied in order

    Returns:
        pd.DataFrame of prepared donations data
    """
    donations_data_prepared = prepare_donations_data(donations_data_raw, rules)
    save_table(donations_data_prepared, prepped_data_filepath)
    LOGGER.info(
        "Saved %s prepared records to %s", f"{len(donations_data_prepared):,}", prepped_data_filepath
    )
    return donations_data_prepared


def load_prepare_donations_data(
    fetcher,
    api_base_url: Optional[str],
    api_params: Mapping[str, Any],
    api_token: Optional[str],
    raw_data_filepath,
    prepped_data_filepath,
    rules: Sequence[TransformRule] = (),
) -> pd.DataFrame:
    """Load raw PDC donations data, then prepare it.

    Both the raw and prepared tables are saved as CSV at the given paths.
    """
    donations_data_raw = fetcher.load_save_donations_raw(
        api_base_url=api_base_url,
        api_params=api_params,
        api_token=api_token,
        raw_data_filepath=raw_data_filepath,
    )
    return prepare_and_save(donations_data_raw, prepped_data_filepath, rules=rules)
