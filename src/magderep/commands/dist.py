from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from magderep.checkm import QualityTable
from magderep.banner import print_startup_intro
from magderep.commands.cluster import split_path_values
from magderep.config import DistConfig, merge_command_config
from magderep.dereplicate.pipeline import DistanceRecord, report_distances
from magderep.dereplicate.pool import initialise_worker_pool, shutdown_worker_pool
from magderep.exceptions import MagDerepError
from magderep.genomes import resolve_genomes
from magderep.logging import configure_logging, get_logger
from magderep.utils.io import check_overwrite, write_tsv, write_tsv_rows

app = typer.Typer(help="Report pairwise MinHash ANI between genomes, annotated with quality.")
console = Console(stderr=True)

DISTANCE_HEADER = (
    "genome_a",
    "genome_b",
    "ani",
    "completeness_a",
    "contamination_a",
    "completeness_b",
    "contamination_b",
)


def distance_rows(records: Iterable[DistanceRecord]) -> Iterable[list[str]]:
    for record in records:
        yield [
            str(record.genome_a.path),
            str(record.genome_b.path),
            f"{record.approximate_ani:.4f}",
            f"{record.quality_a.completeness:.2f}",
            f"{record.quality_a.contamination:.2f}",
            f"{record.quality_b.completeness:.2f}",
            f"{record.quality_b.contamination:.2f}",
        ]


def run_dist(
    *,
    config_path: Path | None,
    genome_fasta_files: list[Path] | None,
    genome_fasta_directory: Path | None,
    genome_fasta_list: Path | None,
    genome_fasta_extension: str | None,
    checkm_tab_table: Path | None,
    num_hashes: int | None,
    kmer_length: int | None,
    output: Path | None,
    threads: int | None,
    force: bool | None,
    log_file: Path | None,
    verbose: bool | None,
    quiet: bool | None,
) -> int:
    try:
        cfg = merge_command_config(
            config_path=config_path,
            section="dist",
            model_cls=DistConfig,
            cli_overrides={
                "genome_fasta_files": genome_fasta_files,
                "genome_fasta_directory": genome_fasta_directory,
                "genome_fasta_list": genome_fasta_list,
                "genome_fasta_extension": genome_fasta_extension,
                "checkm_tab_table": checkm_tab_table,
                "num_hashes": num_hashes,
                "kmer_length": kmer_length,
                "output": output,
                "threads": threads,
                "force": force,
                "log_file": log_file,
                "verbose": verbose,
                "quiet": quiet,
            },
        )

        configure_logging(verbose=cfg.verbose, quiet=cfg.quiet, log_file=cfg.log_file)
        if not cfg.quiet:
            print_startup_intro("dist")
        logger = get_logger("magderep.dist")

        genomes = resolve_genomes(
            fasta_files=cfg.genome_fasta_files,
            fasta_directory=cfg.genome_fasta_directory,
            fasta_list=cfg.genome_fasta_list,
            extension=cfg.genome_fasta_extension,
        )
        if cfg.output is not None:
            check_overwrite(cfg.output, cfg.force)

        logger.info("Reading quality table %s ..", cfg.checkm_tab_table)
        quality = QualityTable.read_file_path(cfg.checkm_tab_table)

        initialise_worker_pool(cfg.threads)
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TimeElapsedColumn(),
                console=console,
                disable=cfg.quiet,
            ) as progress:
                task = progress.add_task("Sketching genomes", total=len(genomes))
                records = report_distances(
                    genomes,
                    quality,
                    cfg.num_hashes,
                    cfg.kmer_length,
                    on_sketched=lambda completed, total: progress.update(task, completed=completed, total=total),
                )
        finally:
            shutdown_worker_pool()

        logger.info("Printing distances ..")
        if cfg.output is not None:
            write_tsv(cfg.output, DISTANCE_HEADER, distance_rows(records), force=cfg.force)
            logger.info("Wrote distances to %s", cfg.output)
        else:
            write_tsv_rows(sys.stdout, distance_rows(records), header=DISTANCE_HEADER)
            sys.stdout.flush()

        logger.info("Finished")
        return 0

    except MagDerepError as exc:
        console.print(f"[red]Error:[/red] {exc}", markup=True, highlight=False)
        return exc.exit_code
    except Exception as exc:  # pragma: no cover - unexpected failures still end the run
        get_logger("magderep.dist").exception("Unhandled dist error")
        console.print(f"[red]Unexpected error:[/red] {exc}")
        return 1


@app.callback(invoke_without_command=True)
def dist_callback(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="YAML config file."),
    checkm_tab_table: Path | None = typer.Option(
        None,
        "--checkm-tab-table",
        help="CheckM --tab_table output or CheckM2 quality_report.tsv (required).",
    ),
    genome_fasta_files: list[str] | None = typer.Option(
        None,
        "--genome-fasta-files",
        "-f",
        help="FASTA files to compare; repeat the option or separate paths with commas.",
    ),
    genome_fasta_directory: Path | None = typer.Option(
        None, "--genome-fasta-directory", help="Directory containing FASTA files to compare."
    ),
    genome_fasta_list: Path | None = typer.Option(
        None, "--genome-fasta-list", help="File listing one genome FASTA path per line."
    ),
    genome_fasta_extension: str | None = typer.Option(
        None, "--genome-fasta-extension", "-x", help="File extension of FASTA files in --genome-fasta-directory [default: fna]."
    ),
    num_hashes: int | None = typer.Option(None, "--num-hashes", min=1, help="Number of hashes per MinHash sketch."),
    kmer_length: int | None = typer.Option(None, "--kmer-length", min=1, max=32, help="k-mer length for MinHash."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the distance table here instead of stdout."),
    threads: int | None = typer.Option(None, "--threads", "-t", min=1, help="Worker threads."),
    force: bool | None = typer.Option(None, "--force", help="Overwrite an existing output file."),
    log_file: Path | None = typer.Option(None, "--log-file", help="Write JSON logs to this file."),
    verbose: bool | None = typer.Option(None, "--verbose", "-v", help="Print extra debug logging information."),
    quiet: bool | None = typer.Option(None, "--quiet", "-q", help="Only show errors."),
) -> None:
    if ctx.invoked_subcommand is not None:
        return

    exit_code = run_dist(
        config_path=config,
        genome_fasta_files=split_path_values(genome_fasta_files),
        genome_fasta_directory=genome_fasta_directory,
        genome_fasta_list=genome_fasta_list,
        genome_fasta_extension=genome_fasta_extension,
        checkm_tab_table=checkm_tab_table,
        num_hashes=num_hashes,
        kmer_length=kmer_length,
        output=output,
        threads=threads,
        force=force,
        log_file=log_file,
        verbose=verbose,
        quiet=quiet,
    )
    raise typer.Exit(exit_code)
