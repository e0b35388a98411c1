#!/usr/bin/env python3
"""
Client for the NCI Genomic Data Commons (GDC) API.

Only the two endpoints the pipeline needs are wrapped:

- ``POST /files`` to list the open-access files of a cohort, together
  with the aliquot and sample barcodes of each file and the clinical
  vital status of its case
- ``GET /data/{file_id}`` to download a single file

API documentation: https://docs.gdc.cancer.gov/API/Users_Guide/

Usage:
    from immune_signature.config import CohortQuery
    from immune_signature.gdc import GDCClient

    client = GDCClient()
    manifest = client.query_files(CohortQuery(project_id="TCGA-LUAD", row_limit=20))
    client.download_file(manifest.iloc[0]["file_id"], Path("counts.tsv"))
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import requests

from ..config import GDC_API_URL, CohortQuery
from ..errors import RetrievalError
from ..model import clean_label
from .http_utils import create_session

logger = logging.getLogger(__name__)

# Fields requested for each file hit
FILE_FIELDS = [
    "file_id",
    "file_name",
    "file_size",
    "cases.submitter_id",
    "cases.samples.submitter_id",
    "cases.samples.portions.analytes.aliquots.submitter_id",
    "cases.samples.sample_type",
    "cases.demographic.vital_status",
]

MANIFEST_COLUMNS = [
    "file_id",
    "file_name",
    "file_size",
    "aliquot",
    "sample",
    "case_id",
    "sample_type",
    "vital_status",
]

DEFAULT_PAGE_SIZE = 500
DOWNLOAD_CHUNK_SIZE = 1 << 16


def build_filters(query: CohortQuery) -> Dict[str, Any]:
    """Build the GDC filter document for a cohort query."""

    def _in(field: str, value: str) -> Dict[str, Any]:
        return {"op": "in", "content": {"field": field, "value": [value]}}

    return {
        "op": "and",
        "content": [
            _in("cases.project.project_id", query.project_id),
            _in("data_category", query.data_category),
            _in("data_type", query.data_type),
            _in("analysis.workflow_type", query.workflow_type),
            _in("access", "open"),
        ],
    }


def _first(items: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
    return (items or [{}])[0]


def parse_file_hit(hit: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten one ``/files`` hit into a manifest row.

    A STAR counts file belongs to exactly one aliquot. One sample can have
    several sequenced aliquots, so the aliquot barcode (e.g.
    ``TCGA-05-4244-01A-01R-1107-07``) identifies the file's matrix column
    and the sample barcode is kept alongside it.
    """
    case = _first(hit.get("cases"))
    sample = _first(case.get("samples"))
    aliquot = _first(_first(_first(sample.get("portions")).get("analytes")).get("aliquots"))
    demographic = case.get("demographic") or {}

    sample_id = sample.get("submitter_id") or case.get("submitter_id")
    return {
        "file_id": hit.get("file_id"),
        "file_name": hit.get("file_name"),
        "file_size": hit.get("file_size"),
        "aliquot": aliquot.get("submitter_id") or sample_id,
        "sample": sample_id,
        "case_id": case.get("submitter_id"),
        "sample_type": clean_label(sample.get("sample_type")),
        "vital_status": clean_label(demographic.get("vital_status")),
    }


class GDCClient:
    """
    Client for querying and downloading from the GDC.

    Example:
        client = GDCClient(timeout=60)
        manifest = client.query_files(query)
        print(f"Found {len(manifest)} files")
    """

    def __init__(
        self,
        base_url: str = GDC_API_URL,
        timeout: int = 60,
        max_retries: int = 3,
        page_size: int = DEFAULT_PAGE_SIZE,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the GDC client.

        Args:
            base_url: API root (no trailing slash)
            timeout: Request timeout in seconds
            max_retries: Maximum transport-level retry attempts
            page_size: Hits requested per ``/files`` call
            session: Pre-configured session (created lazily if None)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.page_size = page_size
        self._session = session

    @property
    def session(self) -> requests.Session:
        """Get or create the requests session."""
        if self._session is None:
            self._session = create_session(max_retries=self.max_retries)
        return self._session

    def _post_files(self, filters: Dict[str, Any], offset: int, size: int) -> Dict[str, Any]:
        payload = {
            "filters": filters,
            "fields": ",".join(FILE_FIELDS),
            "format": "JSON",
            "size": size,
            "from": offset,
            "sort": "file_id:asc",
        }
        try:
            response = self.session.post(
                f"{self.base_url}/files",
                data=json.dumps(payload),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise RetrievalError(f"GDC files query failed: {e}") from e

    def query_files(self, query: CohortQuery) -> pd.DataFrame:
        """
        List the files matching a cohort query.

        Pages through ``/files`` until every hit is collected or the
        query's ``row_limit`` is reached.

        Args:
            query: Cohort descriptor

        Returns:
            Manifest DataFrame, one row per file (see MANIFEST_COLUMNS)

        Raises:
            RetrievalError: on HTTP failure or an empty result set
        """
        filters = build_filters(query)
        limit = query.row_limit
        rows: List[Dict[str, Any]] = []
        offset = 0

        logger.info(
            f"Querying GDC for {query.project_id} / {query.workflow_type}"
            + (f" (first {limit} files)" if limit else "")
        )

        while True:
            size = self.page_size if limit is None else min(self.page_size, limit - len(rows))
            data = self._post_files(filters, offset, size).get("data", {})
            hits = data.get("hits") or []
            rows.extend(parse_file_hit(h) for h in hits)
            offset += len(hits)

            total = data.get("pagination", {}).get("total", offset)
            if not hits or offset >= total:
                break
            if limit is not None and len(rows) >= limit:
                break

        if not rows:
            raise RetrievalError(
                f"GDC query returned no files for project {query.project_id!r}",
                expected="at least one file",
                found=0,
            )

        manifest = pd.DataFrame(rows, columns=MANIFEST_COLUMNS)
        if limit is not None:
            manifest = manifest.head(limit)
        logger.info(f"Found {len(manifest)} files")
        return manifest

    def download_file(self, file_id: str, dest: Path) -> Path:
        """
        Stream one file from ``/data/{file_id}`` to ``dest``.

        Raises:
            RetrievalError: on HTTP or filesystem failure
        """
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        partial = dest.with_name(dest.name + ".part")
        try:
            with self.session.get(
                f"{self.base_url}/data/{file_id}",
                stream=True,
                timeout=self.timeout,
            ) as response:
                response.raise_for_status()
                with open(partial, "wb") as fh:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
            partial.replace(dest)
        except (requests.RequestException, OSError) as e:
            partial.unlink(missing_ok=True)
            raise RetrievalError(f"Download of {file_id} failed: {e}") from e
        return dest
