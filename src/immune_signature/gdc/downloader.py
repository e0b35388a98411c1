"""
GDC cohort downloader.

Downloads the files listed in a query manifest into a local directory,
one subdirectory per file (the ``gdc-client`` layout)::

    <data_dir>/<file_id>/<file_name>

Files already on disk with the expected size are skipped, so an
interrupted download resumes where it stopped. The manifest is saved
next to the files so the cohort can be re-analysed offline.
"""

import logging
from pathlib import Path
from typing import Union

import pandas as pd

from ..errors import RetrievalError
from .client import MANIFEST_COLUMNS, GDCClient

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.tsv"


def local_path(data_dir: Union[str, Path], file_id: str, file_name: str) -> Path:
    return Path(data_dir) / file_id / file_name


def is_complete(path: Path, expected_size) -> bool:
    """True if ``path`` exists and matches the expected size (when known)."""
    if not path.exists():
        return False
    if expected_size is None or pd.isna(expected_size):
        return True
    return path.stat().st_size == int(expected_size)


def save_manifest(manifest: pd.DataFrame, data_dir: Union[str, Path]) -> Path:
    path = Path(data_dir) / MANIFEST_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    manifest.to_csv(path, sep="\t", index=False)
    return path


def load_manifest(data_dir: Union[str, Path]) -> pd.DataFrame:
    """
    Load the manifest written by ``download_cohort``.

    Raises:
        RetrievalError: if the directory holds no manifest
    """
    path = Path(data_dir) / MANIFEST_FILE
    if not path.exists():
        raise RetrievalError(
            f"No manifest found in {data_dir}; run the download step first",
            expected=str(path),
            found="missing",
        )
    manifest = pd.read_csv(path, sep="\t", dtype={"file_id": str, "aliquot": str, "sample": str, "case_id": str})
    missing = [c for c in MANIFEST_COLUMNS if c not in manifest.columns]
    if missing:
        raise RetrievalError(f"Manifest {path} is missing columns", expected=MANIFEST_COLUMNS, found=missing)
    # Empty cells come back as NaN; keep labels as object dtype with None
    manifest = manifest.astype(object).where(manifest.notna(), None)
    return manifest


def download_cohort(
    client: GDCClient,
    manifest: pd.DataFrame,
    data_dir: Union[str, Path],
) -> pd.DataFrame:
    """
    Download every file in the manifest that is not already on disk.

    Args:
        client: GDC client used for the downloads
        manifest: Query manifest (see ``GDCClient.query_files``)
        data_dir: Target directory

    Returns:
        The manifest (also saved as ``<data_dir>/manifest.tsv``)

    Raises:
        RetrievalError: on the first failed download
    """
    data_dir = Path(data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)

    total = len(manifest)
    skipped = 0
    for i, row in enumerate(manifest.itertuples(index=False), 1):
        dest = local_path(data_dir, row.file_id, row.file_name)
        if is_complete(dest, row.file_size):
            skipped += 1
            continue
        logger.info(f"[{i}/{total}] Downloading: {row.file_name}")
        client.download_file(row.file_id, dest)
        if not is_complete(dest, row.file_size):
            raise RetrievalError(
                f"Size mismatch after download: {row.file_id}",
                expected=row.file_size,
                found=dest.stat().st_size,
            )

    if skipped:
        logger.info(f"Skipped {skipped} files already downloaded")
    save_manifest(manifest, data_dir)
    return manifest
