"""
Signature scoring and group comparison.

Turns a retrieved ExpressionContainer into a per-sample immune score and
tests whether that score differs between the two vital-status groups.

Steps (in order):
1. Relabel count rows with unique gene symbols
2. log2(x + 1) normalization
3. Restrict to the marker panel and average per sample
4. Join scores with the outcome label, dropping missing labels
5. Two-sided Wilcoxon rank-sum (Mann-Whitney U) test and verdict
"""

import logging
from typing import Iterable, List, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from .config import DEFAULT_STATUS_COLUMN, SIGNIFICANCE_THRESHOLD
from .errors import DataShapeError, EmptyPanelError, InsufficientGroupsError
from .model import ExpressionContainer, RankSumResult, clean_label, is_missing

logger = logging.getLogger(__name__)

SIGNIFICANT_VERDICT = "Significant: the signature separates survival groups."
TREND_VERDICT = "Trend only: a larger cohort is recommended to reach significance."

OUTCOME_COLUMNS = ["patient", "vital_status", "immune_score"]


def make_unique(names: Iterable, sep: str = ".") -> List[str]:
    """
    Make a sequence of labels unique, keeping order.

    The first occurrence of a label is kept as is; later duplicates get
    ``.1``, ``.2``, ... appended. A generated label never collides with a
    label already present in the input. Missing values become ``"NA"``.

    Example:
        >>> make_unique(["TP53", "TP53", "EGFR"])
        ['TP53', 'TP53.1', 'EGFR']
    """
    labels = ["NA" if is_missing(n) else str(n) for n in names]
    used = set(labels)
    seen = set()
    counters = {}
    result = []

    for label in labels:
        if label not in seen:
            seen.add(label)
            result.append(label)
            continue
        k = counters.get(label, 0)
        while True:
            k += 1
            candidate = f"{label}{sep}{k}"
            if candidate not in used:
                break
        counters[label] = k
        used.add(candidate)
        result.append(candidate)

    return result


def assemble_symbol_matrix(
    container: ExpressionContainer,
    symbol_column: str = "gene_name",
) -> pd.DataFrame:
    """
    Relabel the raw count matrix by gene symbol.

    Missing or blank symbols fall back to the gene's technical ID before
    labels are made unique. Column order is left unchanged.

    Returns:
        Raw counts (genes x samples) indexed by unique gene symbol
    """
    container.validate()

    if symbol_column not in container.genes.columns:
        raise DataShapeError(
            "gene metadata has no symbol column",
            expected=symbol_column,
            found=list(container.genes.columns),
        )

    symbols = container.genes[symbol_column].astype("object")
    blank = symbols.map(lambda s: is_missing(s) or not str(s).strip())
    if blank.any():
        logger.debug(f"{int(blank.sum())} genes have no symbol; using gene IDs")
        symbols = symbols.where(~blank, pd.Series(container.genes.index, index=symbols.index))

    matrix = container.counts.copy()
    matrix.index = pd.Index(make_unique(symbols), name="gene")
    return matrix


def log2_normalize(matrix: pd.DataFrame) -> pd.DataFrame:
    """Return ``log2(x + 1)`` of the matrix as a new DataFrame."""
    return np.log2(matrix.astype(float) + 1.0)


def select_signature(matrix: pd.DataFrame, panel: Sequence[str]) -> pd.DataFrame:
    """
    Restrict the matrix to the marker genes it contains.

    Markers absent from the matrix are dropped silently (logged at INFO).

    Raises:
        EmptyPanelError: if no marker is present in the matrix
    """
    panel = list(dict.fromkeys(panel))
    detected = [g for g in panel if g in matrix.index]
    missing = [g for g in panel if g not in matrix.index]

    if not detected:
        raise EmptyPanelError(
            "no marker gene found in the expression matrix; check the gene ID to symbol mapping",
            expected=panel,
            found=f"{len(matrix.index)} genes, none in panel",
        )
    if missing:
        logger.info(f"Markers not detected: {', '.join(missing)}")

    return matrix.loc[detected]


def immune_score(signature: pd.DataFrame) -> pd.Series:
    """Per-sample mean of the signature rows, ignoring missing values."""
    scores = signature.mean(axis=0, skipna=True)
    scores.name = "immune_score"
    return scores


def build_outcome_table(
    scores: pd.Series,
    samples: pd.DataFrame,
    status_column: str = DEFAULT_STATUS_COLUMN,
) -> pd.DataFrame:
    """
    Join immune scores with each sample's outcome label.

    The join is keyed on sample identifier: both sides must hold the same
    unique set of samples. Rows whose label is missing or a clinical
    placeholder (``Not Reported``, ``Unknown``, ...), or that have no
    defined score, are dropped.

    Returns:
        DataFrame with columns patient, vital_status, immune_score

    Raises:
        DataShapeError: on sample count, duplicate or key mismatch
    """
    if len(scores) != len(samples):
        raise DataShapeError(
            "sample count differs between scores and clinical metadata",
            stage="clinical join",
            expected=len(scores),
            found=len(samples),
        )
    if not scores.index.is_unique or not samples.index.is_unique:
        raise DataShapeError(
            "duplicate sample identifiers at the clinical join",
            stage="clinical join",
        )
    unmatched = scores.index.difference(samples.index)
    if len(unmatched):
        raise DataShapeError(
            "samples without clinical metadata",
            stage="clinical join",
            expected="every scored sample present in clinical metadata",
            found=list(unmatched),
        )
    if status_column not in samples.columns:
        raise DataShapeError(
            "clinical metadata has no outcome column",
            stage="clinical join",
            expected=status_column,
            found=list(samples.columns),
        )

    status = samples[status_column].reindex(scores.index)
    outcome = pd.DataFrame({
        "patient": scores.index.astype(str),
        "vital_status": status.values,
        "immune_score": scores.values,
    })

    outcome["vital_status"] = outcome["vital_status"].map(clean_label)
    missing_status = outcome["vital_status"].isna()
    missing_score = outcome["immune_score"].isna()
    if missing_status.any():
        logger.info(f"Dropping {int(missing_status.sum())} samples with missing {status_column}")
    if (missing_score & ~missing_status).any():
        n_unscored = int((missing_score & ~missing_status).sum())
        logger.warning(f"Dropping {n_unscored} samples with no marker values")

    outcome = outcome.loc[~missing_status & ~missing_score].reset_index(drop=True)
    return outcome[OUTCOME_COLUMNS]


def compare_groups(outcome: pd.DataFrame) -> RankSumResult:
    """
    Two-sided Wilcoxon rank-sum test of immune score between outcome groups.

    Groups are ordered by label; the statistic is the U (W) statistic of
    the first group, as reported by R's ``wilcox.test``.

    Raises:
        InsufficientGroupsError: unless there are exactly two groups
    """
    labels = sorted(outcome["vital_status"].astype(str).unique())
    if len(labels) != 2:
        raise InsufficientGroupsError(
            "rank-sum test needs exactly two outcome groups",
            expected=2,
            found=labels,
        )

    groups = [
        outcome.loc[outcome["vital_status"].astype(str) == label, "immune_score"].to_numpy(dtype=float)
        for label in labels
    ]
    statistic, pvalue = stats.mannwhitneyu(groups[0], groups[1], alternative="two-sided")

    return RankSumResult(
        statistic=float(statistic),
        pvalue=float(pvalue),
        groups=(labels[0], labels[1]),
        group_sizes=(len(groups[0]), len(groups[1])),
        group_medians=(float(np.median(groups[0])), float(np.median(groups[1]))),
    )


def significance_verdict(pvalue: float, threshold: float = SIGNIFICANCE_THRESHOLD) -> str:
    """Significant if ``pvalue < threshold``, otherwise a trend."""
    if pvalue < threshold:
        return SIGNIFICANT_VERDICT
    return TREND_VERDICT
