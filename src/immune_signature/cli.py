from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

import click

from immune_signature.config import PipelineConfig, load_config
from immune_signature.errors import PipelineError
from immune_signature.gdc import (
    GDCClient,
    GDCRetriever,
    download_cohort,
    load_manifest,
    prepare_expression,
)
from immune_signature.pipeline import analyze_container, format_report, run_pipeline, write_outputs


def _build_config(
    project: Optional[str],
    row_limit: Optional[int],
    all_samples: bool,
    markers: Iterable[str],
    threshold: Optional[float],
    data_dir: Optional[Path],
    output_dir: Optional[Path],
) -> PipelineConfig:
    overrides = dict(
        project_id=project,
        marker_panel=tuple(markers) or None,
        significance_threshold=threshold,
        data_dir=data_dir,
        output_dir=output_dir,
    )
    if all_samples:
        overrides["row_limit"] = None
    elif row_limit is not None:
        overrides["row_limit"] = row_limit
    try:
        return load_config(**overrides)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


def _cohort_options(func):
    options = [
        click.option(
            "--project",
            default=None,
            help="GDC project identifier (default: TCGA-LUAD).",
        ),
        click.option(
            "--row-limit",
            type=click.IntRange(1, None),
            default=None,
            help="Only use the first N files of the query result (default: 20).",
        ),
        click.option(
            "--all-samples",
            is_flag=True,
            help="Use the full cohort (no row limit).",
        ),
        click.option(
            "--data-dir",
            type=click.Path(file_okay=False, path_type=Path),
            default=None,
            help="Directory for downloaded files (default: data/gdc).",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _analysis_options(func):
    options = [
        click.option(
            "--marker",
            "markers",
            multiple=True,
            help="Marker gene symbol (repeat for multiple). Defaults to the CD8+ cytotoxic panel.",
        ),
        click.option(
            "--threshold",
            type=click.FloatRange(0, 1, min_open=True, max_open=True),
            default=None,
            help="Significance threshold for the rank-sum p-value (default: 0.05).",
        ),
        click.option(
            "--output-dir",
            type=click.Path(file_okay=False, path_type=Path),
            default=None,
            help="Directory for result tables (default: results).",
        ),
        click.option(
            "--no-write",
            is_flag=True,
            help="Print the report without writing result tables.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _finish(result, config: PipelineConfig, no_write: bool) -> None:
    click.echo(format_report(result))
    if not no_write:
        paths = write_outputs(result, config.output_dir)
        click.echo(f"\nResults saved to: {paths['outcome_table'].parent}")


@click.group()
@click.option("--verbose", is_flag=True, help="Enable verbose logging.")
def cli(verbose: bool) -> None:
    """Immune-signature survival analysis on GDC RNA-seq cohorts."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)


@cli.command("run")
@_cohort_options
@_analysis_options
def run_command(
    project: Optional[str],
    row_limit: Optional[int],
    all_samples: bool,
    data_dir: Optional[Path],
    markers: Iterable[str],
    threshold: Optional[float],
    output_dir: Optional[Path],
    no_write: bool,
) -> None:
    """Retrieve a cohort, score the signature and test it against vital status."""
    config = _build_config(project, row_limit, all_samples, markers, threshold, data_dir, output_dir)
    try:
        result = run_pipeline(config)
    except PipelineError as exc:
        raise click.ClickException(str(exc)) from exc
    _finish(result, config, no_write)


@cli.command("download")
@_cohort_options
def download_command(
    project: Optional[str],
    row_limit: Optional[int],
    all_samples: bool,
    data_dir: Optional[Path],
) -> None:
    """Query the GDC and download a cohort's count files."""
    config = _build_config(project, row_limit, all_samples, (), None, data_dir, None)
    retriever = GDCRetriever(config)
    client: GDCClient = retriever.client
    try:
        manifest = client.query_files(config.cohort_query())
        download_cohort(client, manifest, retriever.data_dir)
    except PipelineError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Downloaded {len(manifest)} files to {retriever.data_dir}")


@cli.command("analyze")
@click.option(
    "--input-dir",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    required=True,
    help="Directory written by the download command (holds manifest.tsv).",
)
@_analysis_options
def analyze_command(
    input_dir: Path,
    markers: Iterable[str],
    threshold: Optional[float],
    output_dir: Optional[Path],
    no_write: bool,
) -> None:
    """Score and test an already downloaded cohort (no network access)."""
    config = _build_config(None, None, False, markers, threshold, None, output_dir)
    try:
        manifest = load_manifest(input_dir)
        container = prepare_expression(
            manifest,
            input_dir,
            count_column=config.count_column,
            project_id=input_dir.name,
        )
        result = analyze_container(container, config)
    except PipelineError as exc:
        raise click.ClickException(str(exc)) from exc
    _finish(result, config, no_write)


def main() -> None:  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
