"""GDC (Genomic Data Commons) retrieval for immune-signature.

Queries the GDC for a cohort's STAR count files, downloads them and
assembles the raw count matrix with its gene and sample metadata.
"""

from .client import GDCClient, build_filters, clean_label, parse_file_hit
from .downloader import download_cohort, load_manifest
from .http_utils import create_session
from .prepare import prepare_expression, read_star_counts
from .retriever import GDCRetriever

__all__ = [
    "GDCClient",
    "GDCRetriever",
    "build_filters",
    "clean_label",
    "create_session",
    "download_cohort",
    "load_manifest",
    "parse_file_hit",
    "prepare_expression",
    "read_star_counts",
]
