"""Cohort retrieval: query, download and assemble in one call."""

import logging
from pathlib import Path
from typing import Optional

from ..config import PipelineConfig, CohortQuery
from ..model import ExpressionContainer
from .client import GDCClient
from .downloader import download_cohort
from .prepare import prepare_expression

logger = logging.getLogger(__name__)


class GDCRetriever:
    """
    Retrieve a cohort's expression container from the GDC.

    Any callable taking a CohortQuery and returning an ExpressionContainer
    can stand in for this class in ``run_pipeline``.

    Example:
        retriever = GDCRetriever(config)
        container = retriever(config.cohort_query())
    """

    def __init__(
        self,
        config: PipelineConfig,
        client: Optional[GDCClient] = None,
    ):
        self.config = config
        self.client = client or GDCClient(
            base_url=config.gdc_api_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    @property
    def data_dir(self) -> Path:
        return self.config.data_dir / self.config.project_id

    def __call__(self, query: CohortQuery) -> ExpressionContainer:
        manifest = self.client.query_files(query)
        download_cohort(self.client, manifest, self.data_dir)
        return prepare_expression(
            manifest,
            self.data_dir,
            count_column=self.config.count_column,
            project_id=query.project_id,
        )
