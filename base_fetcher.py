#!/usr/bin/env python3
"""
Base Socrata Data Fetcher

GET-query construction and fetch-and-cache of CSV exports from Socrata
open-data portals.  Subclass for each dataset (PDC donations, etc.).
"""

import json
import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import pandas as pd
import requests
from requests.compat import quote

from pipeline_errors import FilesystemError, NetworkError, ParseError

LOGGER = logging.getLogger(__name__)

TOKEN_FIELD = "$$app_token"
# SoQL punctuation that the API expects to see literally
_SAFE_CHARS = "$'(),*:="
_TOKEN_PATTERN = re.compile(r"(\$\$app_token=)[^&#]*")


# ----------------------------------------------------------------------
# Query building
# ----------------------------------------------------------------------

def to_query_value(value: Any) -> str:
    """Convert a parameter value to its string form before escaping."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ",".join(to_query_value(v) for v in value)
    return str(value)


def _escape(text: str) -> str:
    return quote(text, safe=_SAFE_CHARS)


def build_get_query(
    base_url: str,
    params: Optional[Mapping[str, Any]] = None,
    api_token: Optional[str] = None,
) -> str:
    """Build the full GET URL from a base URL, ordered fields and a token.

    Values are escaped here, exactly once, so callers pass them unescaped.
    Parameter order follows the mapping's insertion order.
    """
    query_url = base_url
    if params:
        args_collapsed = "&".join(
            f"{_escape(to_query_value(field))}={_escape(to_query_value(value))}"
            for field, value in params.items()
        )
        query_url = f"{query_url}?{args_collapsed}"

    if api_token is not None:
        url_suffix = "&" if params else "?"
        query_url = f"{query_url}{url_suffix}{TOKEN_FIELD}={_escape(to_query_value(api_token))}"

    return query_url


def redact_token(url: str) -> str:
    """Mask the app token so the URL can be logged or persisted."""
    return _TOKEN_PATTERN.sub(r"\1***", url)


# ----------------------------------------------------------------------
# Fetch and cache
# ----------------------------------------------------------------------

class BaseSocrataFetcher:
    """Downloads a Socrata CSV export to a local file and loads it."""

    def __init__(
        self,
        dataset_id: str,
        base_domain: str,
        timeout: float = 120,
        chunk_size: int = 65536,
    ):
        self.dataset_id = dataset_id
        self.base_domain = base_domain
        self.timeout = timeout
        self.chunk_size = chunk_size

    def get_resource_url(self) -> str:
        """Return the Socrata resource CSV endpoint."""
        return f"https://{self.base_domain}/resource/{self.dataset_id}.csv"

    @staticmethod
    def metadata_path_for(data_path) -> Path:
        data_path = Path(data_path)
        return data_path.with_name(f"{data_path.stem}_metadata.json")

    def fetch_raw(self, query: str, dest_path) -> pd.DataFrame:
        """Download ``query`` to ``dest_path`` and load it as a DataFrame.

        Any existing file at ``dest_path`` is removed first so the file on disk
        only ever holds the latest response.  A single attempt is made.
        """
        dest_path = Path(dest_path)
        if not dest_path.parent.is_dir():
            raise FilesystemError(f"Raw data folder does not exist: {dest_path.parent}")

        self._remove_previous(dest_path)
        self._download(query, dest_path)
        raw_df = self.read_table(dest_path)
        self._write_metadata(dest_path, raw_df, query)

        LOGGER.info("Retrieved %s raw records from %s", f"{len(raw_df):,}", self.base_domain)
        return raw_df

    def _remove_previous(self, dest_path: Path) -> None:
        for path in (dest_path, self.metadata_path_for(dest_path)):
            if path.exists():
                try:
                    path.unlink()
                except OSError as exc:
                    raise FilesystemError(f"Could not remove previous file {path}: {exc}") from exc
                LOGGER.debug("Removed previous file %s", path)

    def _download(self, query: str, dest_path: Path) -> None:
        safe_url = redact_token(query)
        LOGGER.info("Downloading %s to %s", safe_url, dest_path)
        try:
            with requests.get(query, stream=True, timeout=self.timeout) as response:
                if not 200 <= response.status_code < 300:
                    raise NetworkError(
                        f"GET {safe_url} returned HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                with open(dest_path, "wb") as handle:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if chunk:
                            handle.write(chunk)
        except requests.exceptions.Timeout as exc:
            raise NetworkError(f"GET {safe_url} timed out after {self.timeout}s") from exc
        except requests.exceptions.RequestException as exc:
            raise NetworkError(f"GET {safe_url} failed: {type(exc).__name__}") from exc
        except OSError as exc:
            raise FilesystemError(f"Could not write raw data to {dest_path}: {exc}") from exc

    @staticmethod
    def read_table(path) -> pd.DataFrame:
        """Parse a CSV file written by :meth:`fetch_raw`."""
        try:
            return pd.read_csv(path, encoding="utf-8")
        except pd.errors.EmptyDataError as exc:
            raise ParseError(f"No tabular data in {path}") from exc
        except (pd.errors.ParserError, UnicodeDecodeError) as exc:
            raise ParseError(f"Malformed CSV in {path}: {exc}") from exc

    def _write_metadata(self, dest_path: Path, df: pd.DataFrame, query: str) -> None:
        metadata = {
            "fetched_at": datetime.now().isoformat(),
            "record_count": len(df),
            "columns": list(df.columns),
            "data_source": f"Socrata {self.base_domain}",
            "dataset_id": self.dataset_id,
            "query_url": redact_token(query),
        }
        metadata_path = self.metadata_path_for(dest_path)
        try:
            with open(metadata_path, "w", encoding="utf-8") as f:
                json.dump(metadata, f, indent=2)
        except OSError as exc:
            raise FilesystemError(f"Could not write metadata to {metadata_path}: {exc}") from exc

    def get_cache_info(self, data_path) -> Dict[str, Any]:
        """Get information about a previously fetched file."""
        data_path = Path(data_path)
        metadata_path = self.metadata_path_for(data_path)
        if not data_path.exists() or not metadata_path.exists():
            return {"cached": False}
        try:
            with open(metadata_path, "r", encoding="utf-8") as f:
                metadata = json.load(f)
            cached_time = datetime.fromisoformat(metadata.get("fetched_at", "1970-01-01"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("Could not read fetch metadata %s: %s", metadata_path, exc)
            return {"cached": False, "error": str(exc)}
        age_hours = (datetime.now() - cached_time).total_seconds() / 3600
        return {
            "cached": True,
            "fetched_at": metadata.get("fetched_at"),
            "age_hours": round(age_hours, 1),
            "record_count": metadata.get("record_count", 0),
            "columns": metadata.get("columns", []),
            "query_url": metadata.get("query_url"),
            "cache_file": str(data_path),
        }
