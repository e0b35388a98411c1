"""
Pipeline configuration.

Loads environment variables from .env and provides the cohort descriptor,
marker panel and statistical threshold used by the pipeline.

Usage:
    from immune_signature.config import load_config

    config = load_config(project_id="TCGA-LUSC", row_limit=None)
    query = config.cohort_query()
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

# Cohort descriptor defaults (GDC vocabulary)
DEFAULT_PROJECT_ID = "TCGA-LUAD"
DEFAULT_DATA_CATEGORY = "Transcriptome Profiling"
DEFAULT_DATA_TYPE = "Gene Expression Quantification"
DEFAULT_WORKFLOW_TYPE = "STAR - Counts"

# Prototyping runs only fetch the first files of the query result
DEFAULT_ROW_LIMIT = 20

# Cytotoxic CD8+ T-cell markers
DEFAULT_MARKER_PANEL: Tuple[str, ...] = ("CD8A", "CD8B", "GZMA", "GZMB", "PRF1", "IFNG")

SIGNIFICANCE_THRESHOLD = 0.05

DEFAULT_COUNT_COLUMN = "unstranded"
DEFAULT_STATUS_COLUMN = "vital_status"

GDC_API_URL = "https://api.gdc.cancer.gov"

ENV_PREFIX = "IMMUNE_SIGNATURE_"


@dataclass(frozen=True)
class CohortQuery:
    """Descriptor of the cohort files to retrieve."""

    project_id: str = DEFAULT_PROJECT_ID
    data_category: str = DEFAULT_DATA_CATEGORY
    data_type: str = DEFAULT_DATA_TYPE
    workflow_type: str = DEFAULT_WORKFLOW_TYPE
    row_limit: Optional[int] = DEFAULT_ROW_LIMIT

    def limited(self, row_limit: Optional[int]) -> "CohortQuery":
        """Return a copy restricted to the first ``row_limit`` files (None = all)."""
        return replace(self, row_limit=row_limit)


@dataclass
class PipelineConfig:
    """Configuration for a single pipeline run.

    Attributes:
        project_id: GDC project (e.g. ``TCGA-LUAD``).
        data_category, data_type, workflow_type: GDC file filters.
        row_limit: Keep only the first N files of the query result.
            ``None`` runs on the full cohort.
        marker_panel: Gene symbols averaged into the immune score.
        significance_threshold: p-value cutoff for the verdict.
        count_column: Column of the STAR counts file used as raw counts.
        status_column: Sample metadata column holding the outcome label.
        data_dir: Where downloaded files and the manifest are kept.
        output_dir: Where result tables are written.
    """

    project_id: str = DEFAULT_PROJECT_ID
    data_category: str = DEFAULT_DATA_CATEGORY
    data_type: str = DEFAULT_DATA_TYPE
    workflow_type: str = DEFAULT_WORKFLOW_TYPE
    row_limit: Optional[int] = DEFAULT_ROW_LIMIT
    marker_panel: Tuple[str, ...] = field(default_factory=lambda: DEFAULT_MARKER_PANEL)
    significance_threshold: float = SIGNIFICANCE_THRESHOLD
    count_column: str = DEFAULT_COUNT_COLUMN
    status_column: str = DEFAULT_STATUS_COLUMN
    data_dir: Path = Path("data/gdc")
    output_dir: Path = Path("results")
    gdc_api_url: str = GDC_API_URL
    timeout: int = 60
    max_retries: int = 3

    def __post_init__(self):
        """Validate configuration."""
        self.marker_panel = tuple(self.marker_panel)
        self.data_dir = Path(self.data_dir)
        self.output_dir = Path(self.output_dir)
        if not self.marker_panel:
            raise ValueError("marker_panel must contain at least one gene symbol")
        if not 0 < self.significance_threshold < 1:
            raise ValueError(
                f"significance_threshold must be in (0, 1), got {self.significance_threshold}"
            )
        if self.row_limit is not None and self.row_limit < 1:
            raise ValueError(f"row_limit must be positive or None, got {self.row_limit}")

    def cohort_query(self) -> CohortQuery:
        return CohortQuery(
            project_id=self.project_id,
            data_category=self.data_category,
            data_type=self.data_type,
            workflow_type=self.workflow_type,
            row_limit=self.row_limit,
        )


def _parse_row_limit(value: str) -> Optional[int]:
    if value.strip().lower() in ("", "none", "all", "0"):
        return None
    return int(value)


def load_config(env_file: Optional[Path] = None, **overrides) -> PipelineConfig:
    """
    Load .env and build a PipelineConfig.

    Precedence is explicit overrides, then environment variables, then
    defaults. Recognised variables:

    - IMMUNE_SIGNATURE_PROJECT_ID
    - IMMUNE_SIGNATURE_ROW_LIMIT ("all" or "none" for the full cohort)
    - IMMUNE_SIGNATURE_MARKERS (comma-separated symbols)
    - IMMUNE_SIGNATURE_DATA_DIR
    - IMMUNE_SIGNATURE_OUTPUT_DIR
    - GDC_API_URL

    Args:
        env_file: Optional path to a .env file (default: search from cwd)
        **overrides: PipelineConfig fields; ``None`` values are ignored
            except for ``row_limit``, where ``None`` means no limit.

    Returns:
        PipelineConfig
    """
    load_dotenv(env_file)

    values = {}
    env = os.environ
    if env.get(f"{ENV_PREFIX}PROJECT_ID"):
        values["project_id"] = env[f"{ENV_PREFIX}PROJECT_ID"]
    if f"{ENV_PREFIX}ROW_LIMIT" in env:
        values["row_limit"] = _parse_row_limit(env[f"{ENV_PREFIX}ROW_LIMIT"])
    if env.get(f"{ENV_PREFIX}MARKERS"):
        values["marker_panel"] = tuple(
            s.strip() for s in env[f"{ENV_PREFIX}MARKERS"].split(",") if s.strip()
        )
    if env.get(f"{ENV_PREFIX}DATA_DIR"):
        values["data_dir"] = Path(env[f"{ENV_PREFIX}DATA_DIR"])
    if env.get(f"{ENV_PREFIX}OUTPUT_DIR"):
        values["output_dir"] = Path(env[f"{ENV_PREFIX}OUTPUT_DIR"])
    if env.get("GDC_API_URL"):
        values["gdc_api_url"] = env["GDC_API_URL"]

    for key, value in overrides.items():
        if value is None and key != "row_limit":
            continue
        values[key] = value

    return PipelineConfig(**values)
