"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest

from immune_signature.config import (
    DEFAULT_MARKER_PANEL,
    DEFAULT_ROW_LIMIT,
    ENV_PREFIX,
    CohortQuery,
    PipelineConfig,
    load_config,
)

ENV_VARS = [
    f"{ENV_PREFIX}PROJECT_ID",
    f"{ENV_PREFIX}ROW_LIMIT",
    f"{ENV_PREFIX}MARKERS",
    f"{ENV_PREFIX}DATA_DIR",
    f"{ENV_PREFIX}OUTPUT_DIR",
    "GDC_API_URL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return tmp_path / ".env"


class TestPipelineConfig:

    def test_defaults(self):
        config = PipelineConfig()
        assert config.project_id == "TCGA-LUAD"
        assert config.row_limit == DEFAULT_ROW_LIMIT == 20
        assert config.marker_panel == ("CD8A", "CD8B", "GZMA", "GZMB", "PRF1", "IFNG")
        assert config.significance_threshold == 0.05

    def test_cohort_query(self):
        query = PipelineConfig(project_id="TCGA-LUSC", row_limit=None).cohort_query()
        assert query == CohortQuery(project_id="TCGA-LUSC", row_limit=None)
        assert query.limited(5).row_limit == 5
        assert query.row_limit is None

    def test_panel_coerced_to_tuple(self):
        assert PipelineConfig(marker_panel=["CD8A"]).marker_panel == ("CD8A",)

    @pytest.mark.parametrize("threshold", [0, 1, 1.5, -0.1])
    def test_invalid_threshold(self, threshold):
        with pytest.raises(ValueError, match="significance_threshold"):
            PipelineConfig(significance_threshold=threshold)

    def test_invalid_row_limit(self):
        with pytest.raises(ValueError, match="row_limit"):
            PipelineConfig(row_limit=0)

    def test_empty_panel(self):
        with pytest.raises(ValueError, match="marker_panel"):
            PipelineConfig(marker_panel=())


class TestLoadConfig:

    def test_defaults_without_env(self, clean_env):
        config = load_config(env_file=clean_env)
        assert config.marker_panel == DEFAULT_MARKER_PANEL
        assert config.row_limit == DEFAULT_ROW_LIMIT

    def test_env_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv(f"{ENV_PREFIX}PROJECT_ID", "TCGA-SKCM")
        monkeypatch.setenv(f"{ENV_PREFIX}MARKERS", "CD8A, PRF1,")
        monkeypatch.setenv(f"{ENV_PREFIX}DATA_DIR", "/tmp/gdc")
        config = load_config(env_file=clean_env)

        assert config.project_id == "TCGA-SKCM"
        assert config.marker_panel == ("CD8A", "PRF1")
        assert config.data_dir == Path("/tmp/gdc")

    @pytest.mark.parametrize("value", ["all", "none", "0"])
    def test_env_row_limit_unlimited(self, clean_env, monkeypatch, value):
        monkeypatch.setenv(f"{ENV_PREFIX}ROW_LIMIT", value)
        assert load_config(env_file=clean_env).row_limit is None

    def test_explicit_beats_env(self, clean_env, monkeypatch):
        monkeypatch.setenv(f"{ENV_PREFIX}PROJECT_ID", "TCGA-SKCM")
        monkeypatch.setenv(f"{ENV_PREFIX}ROW_LIMIT", "50")
        config = load_config(env_file=clean_env, project_id="TCGA-BRCA", row_limit=None)

        assert config.project_id == "TCGA-BRCA"
        assert config.row_limit is None

    def test_none_overrides_ignored(self, clean_env):
        config = load_config(env_file=clean_env, project_id=None, marker_panel=None)
        assert config.project_id == "TCGA-LUAD"
        assert config.marker_panel == DEFAULT_MARKER_PANEL

    def test_dotenv_file(self, clean_env, monkeypatch):
        # registered so teardown removes what load_dotenv sets
        monkeypatch.setenv(f"{ENV_PREFIX}PROJECT_ID", "unset")
        monkeypatch.delenv(f"{ENV_PREFIX}PROJECT_ID")

        clean_env.write_text(f"{ENV_PREFIX}PROJECT_ID=TCGA-HNSC\n")
        config = load_config(env_file=clean_env)
        assert config.project_id == "TCGA-HNSC"
