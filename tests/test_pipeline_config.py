#!/usr/bin/env python3
"""
Unit tests for loading the pipeline config.
"""

from pathlib import Path

import pytest

from pipeline_config import PipelineConfig

REPO_ROOT = Path(__file__).resolve().parent.parent

CONFIG_YAML = """
output_dir_base: out
urls:
  donations_api: https://example.org/api
  donations_api_params:
    year: "2020"
    $limit: 5000
filenames:
  pdc_api_token: secrets/token.txt
  donations_raw: raw.csv
  donations_prepped: prepped.csv
"""


class TestPipelineConfig:
    """Test YAML loading and defaults."""

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML)

        config = PipelineConfig.load(path)

        assert config.urls.donations_api == "https://example.org/api"
        assert list(config.urls.donations_api_params) == ["year", "$limit"]
        assert config.filenames.donations_raw == "raw.csv"
        assert config.http.timeout_seconds == 120
        assert config.prepare.drop_duplicates is False

    def test_relative_output_base_uses_working_dir(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML)
        config = PipelineConfig.load(path)
        monkeypatch.chdir(tmp_path)

        assert config.output_base_path() == Path("out")
        assert config.output_base_path().resolve() == tmp_path.resolve() / "out"

    def test_token_path_uses_repository(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML)
        config = PipelineConfig.load(path)
        repo = tmp_path / "repo"
        monkeypatch.chdir(tmp_path)

        assert config.token_path(repo) == repo / "secrets" / "token.txt"

    def test_output_base_expands_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DONATIONS_OUT", str(tmp_path))
        config = PipelineConfig.from_dict({
            "output_dir_base": "$DONATIONS_OUT/versions",
            "urls": {"donations_api": "https://example.org/api"},
            "filenames": {"pdc_api_token": "t", "donations_raw": "r.csv", "donations_prepped": "p.csv"},
        })

        assert config.output_base_path() == tmp_path / "versions"

    def test_absolute_output_base(self, tmp_path):
        config = PipelineConfig.from_dict({
            "output_dir_base": str(tmp_path / "abs"),
            "urls": {"donations_api": "https://example.org/api"},
            "filenames": {"pdc_api_token": "t", "donations_raw": "r.csv", "donations_prepped": "p.csv"},
        })

        assert config.output_base_path() == tmp_path / "abs"
        assert config.urls.donations_api_params == {}

    def test_missing_key(self):
        with pytest.raises(KeyError, match="urls.donations_api"):
            PipelineConfig.from_dict({
                "output_dir_base": "out",
                "urls": {},
                "filenames": {"pdc_api_token": "t", "donations_raw": "r", "donations_prepped": "p"},
            })

    def test_shipped_config_loads(self):
        config = PipelineConfig.load(REPO_ROOT / "config.yaml")

        assert "kv7h-kjye" in config.urls.donations_api
        assert config.filenames.donations_raw.endswith(".csv")
