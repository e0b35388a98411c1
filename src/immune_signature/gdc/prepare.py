"""
Assemble downloaded STAR count files into an ExpressionContainer.

Each GDC ``*.rna_seq.augmented_star_gene_counts.tsv`` file holds one
sample: a ``# gene-model`` comment line, a header, four ``N_*`` mapping
summary rows and then one row per gene with ``gene_id``, ``gene_name``,
``gene_type`` and several count/TPM/FPKM columns.
"""

import logging
from pathlib import Path
from typing import Union

import pandas as pd

from ..config import DEFAULT_COUNT_COLUMN
from ..errors import DataShapeError, RetrievalError
from ..model import ExpressionContainer
from .downloader import local_path

logger = logging.getLogger(__name__)

GENE_COLUMNS = ["gene_id", "gene_name", "gene_type"]
SAMPLE_COLUMNS = ["sample", "case_id", "vital_status", "sample_type", "file_id"]


def read_star_counts(path: Union[str, Path], count_column: str = DEFAULT_COUNT_COLUMN) -> pd.DataFrame:
    """
    Parse a STAR gene counts file.

    Args:
        path: Path to the TSV file
        count_column: Column to keep as the count value

    Returns:
        DataFrame indexed by gene_id with gene_name, gene_type and
        ``count_column``; mapping summary rows (``N_*``) removed.
    """
    df = pd.read_csv(path, sep="\t", comment="#")

    missing = [c for c in GENE_COLUMNS + [count_column] if c not in df.columns]
    if missing:
        raise DataShapeError(
            f"{Path(path).name} is not a STAR gene counts file",
            expected=GENE_COLUMNS + [count_column],
            found=list(df.columns),
        )

    df = df.loc[~df["gene_id"].astype(str).str.startswith("N_")]
    return df[GENE_COLUMNS + [count_column]].set_index("gene_id")


def prepare_expression(
    manifest: pd.DataFrame,
    data_dir: Union[str, Path],
    count_column: str = DEFAULT_COUNT_COLUMN,
    project_id: str = "",
) -> ExpressionContainer:
    """
    Build an ExpressionContainer from downloaded files.

    Columns of the count matrix are aliquot barcodes in manifest order, so
    several aliquots of one sample each keep their own column; the sample
    barcode is carried in the sample metadata.

    Every file must list the same genes in the same order.

    Raises:
        RetrievalError: if a manifest file is not on disk
        DataShapeError: if files disagree on their gene rows
    """
    if manifest["aliquot"].duplicated().any():
        dupes = manifest.loc[manifest["aliquot"].duplicated(), "aliquot"].tolist()
        raise DataShapeError("manifest lists an aliquot more than once", found=dupes)

    columns = {}
    genes = None
    for row in manifest.itertuples(index=False):
        path = local_path(data_dir, row.file_id, row.file_name)
        if not path.exists():
            raise RetrievalError(f"Expected downloaded file is missing: {path}")

        df = read_star_counts(path, count_column)
        if genes is None:
            genes = df[["gene_name", "gene_type"]]
        elif not df.index.equals(genes.index):
            raise DataShapeError(
                f"gene rows of {row.file_name} differ from the first file",
                expected=len(genes),
                found=len(df),
            )
        columns[str(row.aliquot)] = df[count_column]

    if genes is None:
        raise RetrievalError("Manifest is empty; nothing to prepare", expected="at least one file", found=0)

    counts = pd.DataFrame(columns, index=genes.index)
    counts.columns.name = "aliquot"

    samples = manifest.set_index("aliquot")[SAMPLE_COLUMNS]
    samples.index = samples.index.astype(str)

    logger.info(f"Assembled {counts.shape[0]:,} genes x {counts.shape[1]} samples")
    return ExpressionContainer(
        counts=counts,
        genes=genes.copy(),
        samples=samples,
        project_id=project_id,
    ).validate()
