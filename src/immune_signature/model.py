"""
Result containers for the immune-signature pipeline.

These dataclasses carry each stage's output forward: the retrieved
expression container, the rank-sum comparison and the bundled run result
that reporting and charting layers consume.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .errors import DataShapeError

# Clinical placeholders that mean "no value"
MISSING_LABELS = {"", "not reported", "unknown", "na", "n/a", "none", "null"}


def is_missing(value: Any) -> bool:
    """True for None and scalar NaN / NA values."""
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def clean_label(value: Any) -> Optional[str]:
    """
    Normalize clinical placeholders to None.

    ``Not Reported``, ``Unknown``, ``[Not Available]``, empty strings and
    NaN all mean the value was not recorded. Other values are stripped.
    """
    if is_missing(value):
        return None
    text = str(value).strip()
    if text.startswith("[") and text.endswith("]"):
        return None
    if text.lower() in MISSING_LABELS:
        return None
    return text


@dataclass
class ExpressionContainer:
    """
    Raw counts plus the gene and sample metadata that describe them.

    ``counts`` is genes x samples, indexed by technical gene ID (Ensembl)
    with aliquot barcodes as columns. ``genes`` has one row per count row
    and ``samples`` one row per count column, both keyed by the same
    identifiers.
    """

    counts: pd.DataFrame
    genes: pd.DataFrame
    samples: pd.DataFrame
    project_id: str = ""

    @property
    def n_genes(self) -> int:
        return self.counts.shape[0]

    @property
    def n_samples(self) -> int:
        return self.counts.shape[1]

    def validate(self) -> "ExpressionContainer":
        """Check that counts, genes and samples align one-to-one by key.

        Raises:
            DataShapeError: on any row/column count or identifier mismatch
        """
        if len(self.genes) != self.n_genes:
            raise DataShapeError(
                "gene metadata rows do not match count matrix rows",
                expected=self.n_genes,
                found=len(self.genes),
            )
        if len(self.samples) != self.n_samples:
            raise DataShapeError(
                "sample metadata rows do not match count matrix columns",
                expected=self.n_samples,
                found=len(self.samples),
            )
        if not self.counts.columns.is_unique:
            dupes = self.counts.columns[self.counts.columns.duplicated()].unique().tolist()
            raise DataShapeError("duplicate sample identifiers in count matrix", found=dupes)
        if not self.genes.index.equals(self.counts.index):
            raise DataShapeError(
                "gene metadata identifiers do not match count matrix rows",
                expected="identical gene IDs in the same order",
                found=f"{len(self.genes.index.difference(self.counts.index))} unmatched",
            )
        if not self.samples.index.equals(self.counts.columns):
            missing = self.counts.columns.difference(self.samples.index).tolist()
            raise DataShapeError(
                "sample metadata identifiers do not match count matrix columns",
                expected="identical sample IDs in the same order",
                found=f"unmatched samples {missing}" if missing else "different order",
            )
        return self


@dataclass(frozen=True)
class RankSumResult:
    """Two-sample Mann-Whitney U / Wilcoxon rank-sum comparison."""

    statistic: float
    pvalue: float
    groups: Tuple[str, str]
    group_sizes: Tuple[int, int]
    group_medians: Tuple[float, float]
    alternative: str = "two-sided"
    method: str = "Wilcoxon rank sum test (Mann-Whitney U)"

    def to_dict(self) -> Dict:
        return {
            "method": self.method,
            "alternative": self.alternative,
            "statistic": self.statistic,
            "pvalue": self.pvalue,
            "groups": list(self.groups),
            "group_sizes": dict(zip(self.groups, self.group_sizes)),
            "group_medians": dict(zip(self.groups, self.group_medians)),
        }

    def __str__(self) -> str:
        return (
            f"{self.method}\n"
            f"  groups: {self.groups[0]} (n={self.group_sizes[0]}) vs "
            f"{self.groups[1]} (n={self.group_sizes[1]})\n"
            f"  W = {self.statistic:g}, p-value = {self.pvalue:.4g}\n"
            f"  alternative hypothesis: {self.alternative}"
        )


@dataclass
class PipelineResult:
    """Everything a run produced, in stage order."""

    container: ExpressionContainer
    expression: pd.DataFrame
    signature: pd.DataFrame
    scores: pd.Series
    outcome: pd.DataFrame
    test_result: RankSumResult
    verdict: str
    markers_detected: List[str] = field(default_factory=list)
    markers_missing: List[str] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def n_samples(self) -> int:
        return self.container.n_samples

    @property
    def n_analyzed(self) -> int:
        return len(self.outcome)

    def summary(self) -> Dict:
        return {
            "timestamp": self.timestamp,
            "project_id": self.container.project_id,
            "n_samples": self.n_samples,
            "n_analyzed": self.n_analyzed,
            "markers_detected": self.markers_detected,
            "markers_missing": self.markers_missing,
            "test": self.test_result.to_dict(),
            "verdict": self.verdict,
        }
