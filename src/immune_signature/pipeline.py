"""
Immune-signature pipeline orchestrator.

Runs the five stages in order and returns a PipelineResult:

1. Cohort query & retrieval
2. Matrix assembly (gene IDs -> unique symbols)
3. log2(x + 1) normalization
4. Signature scoring and clinical join
5. Rank-sum comparison and verdict

Any stage failure raises a PipelineError subclass and nothing is written.
"""

import json
import logging
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from .analysis import (
    assemble_symbol_matrix,
    build_outcome_table,
    compare_groups,
    immune_score,
    log2_normalize,
    select_signature,
    significance_verdict,
)
from .config import CohortQuery, PipelineConfig
from .gdc import GDCRetriever
from .model import ExpressionContainer, PipelineResult

logger = logging.getLogger(__name__)

Retriever = Callable[[CohortQuery], ExpressionContainer]

N_STAGES = 5


def _stage(number: int, message: str) -> None:
    logger.info(f"[{number}/{N_STAGES}] {message}")


def analyze_container(container: ExpressionContainer, config: PipelineConfig) -> PipelineResult:
    """
    Run stages 2-5 on an already retrieved container.

    Args:
        container: Raw counts with gene and sample metadata
        config: Marker panel, threshold and outcome column

    Returns:
        PipelineResult
    """
    _stage(2, "Mapping gene IDs to symbols...")
    raw = assemble_symbol_matrix(container)
    logger.info(f"  {raw.shape[0]:,} genes x {raw.shape[1]} samples")

    _stage(3, "Normalizing expression (log2(x + 1))...")
    expression = log2_normalize(raw)

    _stage(4, "Scoring immune signature...")
    signature = select_signature(expression, config.marker_panel)
    detected = list(signature.index)
    missing = [g for g in dict.fromkeys(config.marker_panel) if g not in detected]
    logger.info(f"  Markers detected: {len(detected)}/{len(detected) + len(missing)}")
    scores = immune_score(signature)
    outcome = build_outcome_table(scores, container.samples, config.status_column)
    logger.info(f"  Samples with outcome label: {len(outcome)}/{len(scores)}")

    _stage(5, "Comparing immune score between outcome groups...")
    test_result = compare_groups(outcome)
    verdict = significance_verdict(test_result.pvalue, config.significance_threshold)

    return PipelineResult(
        container=container,
        expression=expression,
        signature=signature,
        scores=scores,
        outcome=outcome,
        test_result=test_result,
        verdict=verdict,
        markers_detected=detected,
        markers_missing=missing,
    )


def run_pipeline(
    config: PipelineConfig,
    retriever: Optional[Retriever] = None,
) -> PipelineResult:
    """
    Main entry point: retrieve the cohort and analyse it.

    Args:
        config: Pipeline configuration
        retriever: Callable mapping a CohortQuery to an ExpressionContainer
            (defaults to a GDCRetriever built from ``config``)

    Returns:
        PipelineResult
    """
    if retriever is None:
        retriever = GDCRetriever(config)

    query = config.cohort_query()
    _stage(1, f"Retrieving {query.project_id} ({query.workflow_type})...")
    container = retriever(query)
    if not container.project_id:
        container.project_id = query.project_id
    logger.info(f"  Retrieved {container.n_genes:,} genes x {container.n_samples} samples")

    return analyze_container(container, config)


def format_report(result: PipelineResult) -> str:
    """Human-readable summary of a run."""
    lines = [
        "=" * 60,
        f"IMMUNE SIGNATURE REPORT: {result.container.project_id or 'cohort'}",
        "=" * 60,
        f"Samples retrieved: {result.n_samples}",
        f"Samples analyzed:  {result.n_analyzed}",
        f"Markers detected:  {', '.join(result.markers_detected)}",
    ]
    if result.markers_missing:
        lines.append(f"Markers missing:   {', '.join(result.markers_missing)}")
    lines += [
        "",
        "STATISTICAL TEST RESULTS:",
        str(result.test_result),
        "",
        result.verdict,
        "=" * 60,
    ]
    return "\n".join(lines)


def write_outputs(result: PipelineResult, output_dir: Union[str, Path]) -> Dict[str, Path]:
    """
    Write the tables a charting layer needs.

    - ``signature_matrix.tsv``: normalized marker rows x samples (heatmap)
    - ``outcome_table.tsv``: patient, vital_status, immune_score (boxplot)
    - ``rank_sum_test.json``: run summary and test statistics

    Returns:
        Mapping of output name to written path
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    paths = {
        "signature_matrix": output_path / "signature_matrix.tsv",
        "outcome_table": output_path / "outcome_table.tsv",
        "rank_sum_test": output_path / "rank_sum_test.json",
    }
    result.signature.to_csv(paths["signature_matrix"], sep="\t")
    result.outcome.to_csv(paths["outcome_table"], sep="\t", index=False)
    with open(paths["rank_sum_test"], "w") as f:
        json.dump(result.summary(), f, indent=2)

    for name, path in paths.items():
        logger.info(f"Wrote {name}: {path}")
    return paths
