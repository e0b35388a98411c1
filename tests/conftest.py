"""Shared fixtures: a small synthetic cohort with known values."""

import numpy as np
import pandas as pd
import pytest

from immune_signature.model import ExpressionContainer

PANEL = ["CD8A", "CD8B", "GZMA", "GZMB", "PRF1", "IFNG"]


def make_container(
    symbols=PANEL,
    statuses=("Alive",) * 4 + ("Dead",) * 4,
    counts=None,
    project_id="TCGA-TEST",
):
    """Build a genes x samples container.

    Default counts are ``10 * (sample + 1) + gene``, so every sample's
    score is strictly larger than the previous one.
    """
    n_genes = len(symbols)
    n_samples = len(statuses)
    gene_ids = [f"ENSG{i:011d}.1" for i in range(1, n_genes + 1)]
    sample_ids = [f"TCGA-AA-{i:04d}-01A" for i in range(1, n_samples + 1)]

    if counts is None:
        counts = np.array(
            [[10 * (j + 1) + i for j in range(n_samples)] for i in range(n_genes)]
        )

    return ExpressionContainer(
        counts=pd.DataFrame(counts, index=gene_ids, columns=sample_ids),
        genes=pd.DataFrame(
            {"gene_name": list(symbols), "gene_type": ["protein_coding"] * n_genes},
            index=gene_ids,
        ),
        samples=pd.DataFrame(
            {
                "case_id": [s[:12] for s in sample_ids],
                "vital_status": list(statuses),
                "sample_type": ["Primary Tumor"] * n_samples,
                "file_id": [f"file-{i}" for i in range(n_samples)],
            },
            index=sample_ids,
        ),
        project_id=project_id,
    )


@pytest.fixture
def container():
    return make_container()


STAR_HEADER = (
    "gene_id\tgene_name\tgene_type\tunstranded\tstranded_first\tstranded_second\t"
    "tpm_unstranded\tfpkm_unstranded\tfpkm_uq_unstranded\n"
)


def write_star_file(path, genes, counts):
    """Write a GDC augmented STAR gene counts file.

    Args:
        path: Destination file
        genes: List of (gene_id, gene_name, gene_type)
        counts: Unstranded counts, one per gene
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ["# gene-model: GENCODE v36\n", STAR_HEADER]
    for summary in ("N_unmapped", "N_multimapping", "N_noFeature", "N_ambiguous"):
        lines.append(f"{summary}\t\t\t1000\t1000\t1000\t\t\t\n")
    for (gene_id, name, gene_type), count in zip(genes, counts):
        lines.append(
            f"{gene_id}\t{name}\t{gene_type}\t{count}\t{count // 2}\t{count // 2}\t1.0\t0.5\t0.6\n"
        )
    path.write_text("".join(lines))
    return path
