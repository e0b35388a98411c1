"""End-to-end tests for the pipeline orchestrator on synthetic cohorts."""

import json

import numpy as np
import pandas as pd
import pytest
from scipy import stats

from immune_signature.analysis import SIGNIFICANT_VERDICT, TREND_VERDICT, significance_verdict
from immune_signature.config import PipelineConfig
from immune_signature.errors import (
    DataShapeError,
    EmptyPanelError,
    PipelineError,
    RetrievalError,
)
from immune_signature.pipeline import (
    analyze_container,
    format_report,
    run_pipeline,
    write_outputs,
)

from conftest import PANEL, make_container


class _RecordingRetriever:
    """Retriever stand-in returning a fixed container."""

    def __init__(self, container):
        self.container = container
        self.queries = []

    def __call__(self, query):
        self.queries.append(query)
        return self.container


# ---------------------------------------------------------------------------
# ExpressionContainer validation
# ---------------------------------------------------------------------------

class TestContainerValidation:

    def test_valid_container(self, container):
        assert container.validate() is container
        assert container.n_genes == 6
        assert container.n_samples == 8

    def test_sample_count_mismatch(self):
        c = make_container(statuses=["Alive", "Dead"] * 5)
        c.samples = c.samples.iloc[:9]
        with pytest.raises(DataShapeError) as excinfo:
            c.validate()
        assert excinfo.value.expected == 10
        assert excinfo.value.found == 9

    def test_gene_count_mismatch(self, container):
        container.genes = container.genes.iloc[:5]
        with pytest.raises(DataShapeError, match="gene metadata rows"):
            container.validate()

    def test_gene_ids_misaligned(self, container):
        container.genes = container.genes.iloc[::-1]
        with pytest.raises(DataShapeError, match="gene metadata identifiers"):
            container.validate()

    def test_sample_ids_misaligned(self, container):
        container.samples.index = [f"OTHER-{i}" for i in range(8)]
        with pytest.raises(DataShapeError, match="sample metadata identifiers"):
            container.validate()

    def test_error_names_stage(self, container):
        container.genes = container.genes.iloc[:5]
        with pytest.raises(PipelineError) as excinfo:
            container.validate()
        assert str(excinfo.value).startswith("[assembly]")


# ---------------------------------------------------------------------------
# Full analysis
# ---------------------------------------------------------------------------

class TestAnalyzeContainer:

    def test_six_by_eight_scenario(self, container):
        config = PipelineConfig(marker_panel=PANEL)
        result = analyze_container(container, config)

        # Scores are the hand-computed column means of log2(count + 1)
        counts = container.counts.to_numpy(dtype=float)
        expected = np.log2(counts + 1).mean(axis=0)
        np.testing.assert_allclose(result.scores.to_numpy(), expected)
        assert list(result.signature.index) == PANEL
        assert result.markers_missing == []

        alive = expected[:4]
        dead = expected[4:]
        ref = stats.mannwhitneyu(alive, dead, alternative="two-sided")
        assert result.test_result.statistic == pytest.approx(ref.statistic)
        assert result.test_result.pvalue == pytest.approx(ref.pvalue)
        assert result.test_result.groups == ("Alive", "Dead")

        # Fully separated 4 vs 4: exact two-sided p = 2/70
        assert result.test_result.pvalue == pytest.approx(2 / 70)
        assert result.verdict == significance_verdict(ref.pvalue, 0.05)
        assert result.verdict == SIGNIFICANT_VERDICT

    def test_interleaved_scores_give_trend(self):
        c = make_container(statuses=["Alive", "Dead"] * 4)
        result = analyze_container(c, PipelineConfig(marker_panel=PANEL))
        assert result.test_result.pvalue > 0.05
        assert result.verdict == TREND_VERDICT

    def test_missing_status_sample_excluded(self):
        statuses = ["Alive", "Alive", None, "Alive", "Dead", "Dead", "Dead", "Dead"]
        c = make_container(statuses=statuses)
        result = analyze_container(c, PipelineConfig(marker_panel=PANEL))

        excluded = c.samples.index[2]
        assert result.n_analyzed == 7
        assert excluded not in set(result.outcome["patient"])
        assert result.test_result.group_sizes == (3, 4)

    def test_partial_panel_reported(self, container):
        config = PipelineConfig(marker_panel=("CD8A", "GZMB", "NOTAGENE"))
        result = analyze_container(container, config)
        assert result.markers_detected == ["CD8A", "GZMB"]
        assert result.markers_missing == ["NOTAGENE"]

    def test_empty_panel_aborts(self, container):
        config = PipelineConfig(marker_panel=("FAKE1", "FAKE2"))
        with pytest.raises(EmptyPanelError):
            analyze_container(container, config)

    def test_custom_threshold(self):
        c = make_container(statuses=["Alive", "Dead"] * 4)
        result = analyze_container(c, PipelineConfig(marker_panel=PANEL, significance_threshold=0.99))
        assert result.verdict == SIGNIFICANT_VERDICT


# ---------------------------------------------------------------------------
# run_pipeline
# ---------------------------------------------------------------------------

class TestRunPipeline:

    def test_retriever_receives_query(self, container):
        retriever = _RecordingRetriever(container)
        config = PipelineConfig(project_id="TCGA-TEST", row_limit=8)
        result = run_pipeline(config, retriever=retriever)

        assert len(retriever.queries) == 1
        query = retriever.queries[0]
        assert query.project_id == "TCGA-TEST"
        assert query.row_limit == 8
        assert query.workflow_type == "STAR - Counts"
        assert result.n_samples == 8

    def test_project_id_filled_from_query(self, container):
        container.project_id = ""
        result = run_pipeline(PipelineConfig(project_id="TCGA-LUSC"), retriever=_RecordingRetriever(container))
        assert result.container.project_id == "TCGA-LUSC"

    def test_retrieval_error_propagates(self):
        def failing(query):
            raise RetrievalError("GDC files query failed: 503 Server Error")

        with pytest.raises(RetrievalError, match="503 Server Error"):
            run_pipeline(PipelineConfig(), retriever=failing)


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------

class TestReporting:

    def test_format_report(self, container):
        result = analyze_container(container, PipelineConfig(marker_panel=PANEL + ["FAKE"]))
        report = format_report(result)
        assert "TCGA-TEST" in report
        assert "STATISTICAL TEST RESULTS" in report
        assert "p-value" in report
        assert "Markers missing:   FAKE" in report
        assert report.count(result.verdict) == 1

    def test_write_outputs(self, container, tmp_path):
        result = analyze_container(container, PipelineConfig(marker_panel=PANEL))
        paths = write_outputs(result, tmp_path / "out")

        signature = pd.read_csv(paths["signature_matrix"], sep="\t", index_col=0)
        assert list(signature.index) == PANEL
        assert list(signature.columns) == list(container.counts.columns)

        outcome = pd.read_csv(paths["outcome_table"], sep="\t")
        assert list(outcome.columns) == ["patient", "vital_status", "immune_score"]
        assert len(outcome) == 8

        with open(paths["rank_sum_test"]) as f:
            summary = json.load(f)
        assert summary["project_id"] == "TCGA-TEST"
        assert summary["n_analyzed"] == 8
        assert summary["test"]["pvalue"] == pytest.approx(result.test_result.pvalue)
        assert summary["verdict"] == result.verdict
