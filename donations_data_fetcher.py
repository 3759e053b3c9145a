#!/usr/bin/env python3
"""
Fetcher for Washington Public Disclosure Commission (PDC) contributions.

Dataset: Contributions to Candidates and Political Committees
Socrata ID: kv7h-kjye
Portal: data.wa.gov
Format: CSV export, one row per reported contribution
"""

import logging
from typing import Any, Mapping, Optional

import pandas as pd

from base_fetcher import BaseSocrataFetcher, build_get_query, redact_token

LOGGER = logging.getLogger(__name__)


class PDCDonationsFetcher(BaseSocrataFetcher):
    """Fetch raw PDC donations data and cache it as CSV."""

    DATASET_ID = "kv7h-kjye"
    BASE_DOMAIN = "data.wa.gov"

    def __init__(self, timeout: float = 120, chunk_size: int = 65536):
        super().__init__(
            dataset_id=self.DATASET_ID,
            base_domain=self.BASE_DOMAIN,
            timeout=timeout,
            chunk_size=chunk_size,
        )

    def load_save_donations_raw(
        self,
        api_base_url: Optional[str],
        api_params: Mapping[str, Any],
        api_token: Optional[str],
        raw_data_filepath,
    ) -> pd.DataFrame:
        """Build the API query, save the raw CSV and return it as a DataFrame.

        Falls back to the dataset's resource endpoint when no base URL is given.
        The containing folder of ``raw_data_filepath`` must already exist.
        """
        api_query = build_get_query(
            base_url=api_base_url or self.get_resource_url(),
            params=api_params,
            api_token=api_token,
        )
        LOGGER.debug("PDC donations query: %s", redact_token(api_query))
        return self.fetch_raw(api_query, raw_data_filepath)
