"""Cytotoxic immune-signature scoring for GDC RNA-seq cohorts.

Retrieves STAR raw counts for a TCGA cohort, scores each sample on a
CD8+ T-cell marker panel and tests the score against vital status.

Usage::

    from immune_signature import load_config, run_pipeline, format_report

    config = load_config(project_id="TCGA-LUAD", row_limit=20)
    result = run_pipeline(config)
    print(format_report(result))
"""

from immune_signature.config import (
    DEFAULT_MARKER_PANEL,
    SIGNIFICANCE_THRESHOLD,
    CohortQuery,
    PipelineConfig,
    load_config,
)
from immune_signature.errors import (
    DataShapeError,
    EmptyPanelError,
    InsufficientGroupsError,
    PipelineError,
    RetrievalError,
)
from immune_signature.model import ExpressionContainer, PipelineResult, RankSumResult
from immune_signature.pipeline import analyze_container, format_report, run_pipeline, write_outputs

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_MARKER_PANEL",
    "SIGNIFICANCE_THRESHOLD",
    "CohortQuery",
    "PipelineConfig",
    "load_config",
    "PipelineError",
    "RetrievalError",
    "DataShapeError",
    "EmptyPanelError",
    "InsufficientGroupsError",
    "ExpressionContainer",
    "PipelineResult",
    "RankSumResult",
    "analyze_container",
    "format_report",
    "run_pipeline",
    "write_outputs",
]
