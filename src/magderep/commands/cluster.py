from __future__ import annotations

import sys
from pathlib import Path
from typing import Sequence

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from magderep.checkm import QualityTable
from magderep.banner import print_startup_intro
from magderep.config import ClusterConfig, merge_command_config
from magderep.dereplicate.engine import ClusterMethod, ClusterThresholds
from magderep.dereplicate.pipeline import run_clustering
from magderep.dereplicate.pool import initialise_worker_pool, shutdown_worker_pool
from magderep.dereplicate.quality import QualityFormula
from magderep.exceptions import MagDerepError, MagDerepUsageError
from magderep.genomes import Genome, resolve_genomes
from magderep.logging import configure_logging, get_logger
from magderep.runners import FastANIRunner, SkaniRunner
from magderep.runners.base import ExactAniOracle, ToolRunner
from magderep.utils.io import check_overwrite, copy_file, ensure_dir, write_lines, write_tsv, write_tsv_rows

app = typer.Typer(help="Cluster genome FASTA files by average nucleotide identity.")
console = Console(stderr=True)


def split_path_values(values: Sequence[str] | None) -> list[Path]:
    """Accept repeated and/or comma-separated path values."""

    paths: list[Path] = []
    for value in values or []:
        paths.extend(Path(item.strip()) for item in value.split(",") if item.strip())
    return paths


def build_exact_oracle(method: ClusterMethod) -> ExactAniOracle | None:
    runner: ToolRunner
    if method is ClusterMethod.MINHASH_FASTANI:
        runner = FastANIRunner()
    elif method is ClusterMethod.MINHASH_SKANI:
        runner = SkaniRunner()
    else:
        return None

    if not runner.is_available():
        raise MagDerepUsageError(
            f"Required external tool not found in PATH: {runner.executable}. "
            f"Install {runner.executable} or run with --method minhash."
        )
    get_logger("magderep.cluster").info("Using %s (%s)", runner.executable, runner.version())
    return runner


def cluster_rows(genomes: Sequence[Genome], clusters: Sequence[Sequence[int]]) -> list[tuple[str, str]]:
    """One (representative, member) row per genome; the representative's self-pair comes first."""

    paths = {genome.index: str(genome.path) for genome in genomes}
    rows: list[tuple[str, str]] = []
    for members in clusters:
        representative = paths[members[0]]
        rows.extend((representative, paths[member]) for member in members)
    return rows


def check_representative_fasta_targets(genomes: Sequence[Genome], out_dir: Path, *, force: bool) -> None:
    """Any genome may become a representative, so every file name must be free in `out_dir`."""

    seen: dict[str, Path] = {}
    for genome in genomes:
        name = genome.path.name
        if name in seen:
            raise MagDerepUsageError(
                f"Genomes {seen[name]} and {genome.path} share the file name {name}; "
                f"cannot copy both into {out_dir}"
            )
        seen[name] = genome.path
        check_overwrite(out_dir / name, force)


def _write_representative_fastas(
    genomes: Sequence[Genome],
    clusters: Sequence[Sequence[int]],
    out_dir: Path,
    *,
    force: bool,
) -> list[Path]:
    paths = {genome.index: genome.path for genome in genomes}
    ensure_dir(out_dir)
    written: list[Path] = []
    for members in clusters:
        source = paths[members[0]]
        written.append(copy_file(source, out_dir / source.name, force=force))
    return written


def run_cluster(
    *,
    config_path: Path | None,
    genome_fasta_files: list[Path] | None,
    genome_fasta_directory: Path | None,
    genome_fasta_list: Path | None,
    genome_fasta_extension: str | None,
    checkm_tab_table: Path | None,
    ani: float | None,
    minhash_prethreshold: float | None,
    method: ClusterMethod | None,
    min_completeness: float | None,
    max_contamination: float | None,
    quality_formula: QualityFormula | None,
    num_hashes: int | None,
    kmer_length: int | None,
    output_cluster_definition: Path | None,
    output_representative_list: Path | None,
    output_representative_fasta_directory: Path | None,
    threads: int | None,
    force: bool | None,
    log_file: Path | None,
    verbose: bool | None,
    quiet: bool | None,
) -> int:
    try:
        cfg = merge_command_config(
            config_path=config_path,
            section="cluster",
            model_cls=ClusterConfig,
            cli_overrides={
                "genome_fasta_files": genome_fasta_files,
                "genome_fasta_directory": genome_fasta_directory,
                "genome_fasta_list": genome_fasta_list,
                "genome_fasta_extension": genome_fasta_extension,
                "checkm_tab_table": checkm_tab_table,
                "ani": ani,
                "minhash_prethreshold": minhash_prethreshold,
                "method": method,
                "min_completeness": min_completeness,
                "max_contamination": max_contamination,
                "quality_formula": quality_formula,
                "num_hashes": num_hashes,
                "kmer_length": kmer_length,
                "output_cluster_definition": output_cluster_definition,
                "output_representative_list": output_representative_list,
                "output_representative_fasta_directory": output_representative_fasta_directory,
                "threads": threads,
                "force": force,
                "log_file": log_file,
                "verbose": verbose,
                "quiet": quiet,
            },
        )

        configure_logging(verbose=cfg.verbose, quiet=cfg.quiet, log_file=cfg.log_file)
        if not cfg.quiet:
            print_startup_intro("cluster")
        logger = get_logger("magderep.cluster")

        genomes = resolve_genomes(
            fasta_files=cfg.genome_fasta_files,
            fasta_directory=cfg.genome_fasta_directory,
            fasta_list=cfg.genome_fasta_list,
            extension=cfg.genome_fasta_extension,
        )

        quality: QualityTable | None = None
        if cfg.checkm_tab_table is not None:
            logger.info("Reading quality table %s ..", cfg.checkm_tab_table)
            quality = QualityTable.read_file_path(cfg.checkm_tab_table)

        for output_path in (cfg.output_cluster_definition, cfg.output_representative_list):
            if output_path is not None:
                check_overwrite(output_path, cfg.force)
        if cfg.output_representative_fasta_directory is not None:
            check_representative_fasta_targets(
                genomes, cfg.output_representative_fasta_directory, force=cfg.force
            )

        exact_oracle = build_exact_oracle(cfg.method)

        logger.info("Clustering %d genomes ..", len(genomes))
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
                task = progress.add_task("Sketching genomes", total=None)
                result = run_clustering(
                    genomes,
                    quality,
                    thresholds=ClusterThresholds(ani=cfg.ani, minhash_prethreshold=cfg.minhash_prethreshold),
                    method=cfg.method,
                    num_hashes=cfg.num_hashes,
                    kmer_length=cfg.kmer_length,
                    min_completeness=cfg.min_completeness,
                    max_contamination=cfg.max_contamination,
                    quality_formula=cfg.quality_formula,
                    exact_oracle=exact_oracle,
                    on_sketched=lambda completed, total: progress.update(task, completed=completed, total=total),
                )
        finally:
            shutdown_worker_pool()

        rows = cluster_rows(genomes, result.clusters)
        if cfg.output_cluster_definition is not None:
            write_tsv(cfg.output_cluster_definition, None, rows, force=cfg.force)
            logger.info("Wrote cluster definition to %s", cfg.output_cluster_definition)
        else:
            write_tsv_rows(sys.stdout, rows)
            sys.stdout.flush()

        if cfg.output_representative_list is not None:
            paths = {genome.index: str(genome.path) for genome in genomes}
            write_lines(
                cfg.output_representative_list,
                (paths[members[0]] for members in result.clusters),
                force=cfg.force,
            )
            logger.info("Wrote representative list to %s", cfg.output_representative_list)

        if cfg.output_representative_fasta_directory is not None:
            copied = _write_representative_fastas(
                genomes,
                result.clusters,
                cfg.output_representative_fasta_directory,
                force=cfg.force,
            )
            logger.info(
                "Copied %d representative FASTA files to %s",
                len(copied),
                cfg.output_representative_fasta_directory,
            )

        logger.info("Finished printing genome clusters")
        return 0

    except MagDerepError as exc:
        console.print(f"[red]Error:[/red] {exc}", markup=True, highlight=False)
        return exc.exit_code
    except Exception as exc:  # pragma: no cover - unexpected failures still end the run
        get_logger("magderep.cluster").exception("Unhandled cluster error")
        console.print(f"[red]Unexpected error:[/red] {exc}")
        return 1


@app.callback(invoke_without_command=True)
def cluster_callback(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="YAML config file."),
    ani: float | None = typer.Option(
        None, "--ani", min=0.0, max=100.0, help="Average nucleotide identity threshold for clustering (percent)."
    ),
    genome_fasta_files: list[str] | None = typer.Option(
        None,
        "--genome-fasta-files",
        "-f",
        help="FASTA files to cluster; repeat the option or separate paths with commas.",
    ),
    genome_fasta_directory: Path | None = typer.Option(
        None, "--genome-fasta-directory", help="Directory containing FASTA files to cluster."
    ),
    genome_fasta_list: Path | None = typer.Option(
        None, "--genome-fasta-list", help="File listing one genome FASTA path per line."
    ),
    genome_fasta_extension: str | None = typer.Option(
        None, "--genome-fasta-extension", "-x", help="File extension of FASTA files in --genome-fasta-directory [default: fna]."
    ),
    checkm_tab_table: Path | None = typer.Option(
        None,
        "--checkm-tab-table",
        help="CheckM --tab_table output or CheckM2 quality_report.tsv.",
    ),
    min_completeness: float | None = typer.Option(
        None, "--min-completeness", help="Genomes with less than this percentage of completeness are excluded."
    ),
    max_contamination: float | None = typer.Option(
        None, "--max-contamination", help="Genomes with more than this percentage of contamination are excluded."
    ),
    quality_formula: QualityFormula | None = typer.Option(
        None, "--quality-formula", help="Score used to rank genomes for representative selection."
    ),
    method: ClusterMethod | None = typer.Option(
        None,
        "--method",
        help="ANI method: MinHash prefilter plus fastANI or skani confirmation, or MinHash only [default: minhash+fastani].",
    ),
    minhash_prethreshold: float | None = typer.Option(
        None,
        "--minhash-prethreshold",
        min=0.0,
        max=100.0,
        help="MinHash ANI required before exact ANI is computed for a pair [default: 90].",
    ),
    num_hashes: int | None = typer.Option(None, "--num-hashes", min=1, help="Number of hashes per MinHash sketch."),
    kmer_length: int | None = typer.Option(None, "--kmer-length", min=1, max=32, help="k-mer length for MinHash."),
    output_cluster_definition: Path | None = typer.Option(
        None, "--output-cluster-definition", help="Write representative<TAB>member lines here instead of stdout."
    ),
    output_representative_list: Path | None = typer.Option(
        None, "--output-representative-list", help="Write one representative path per line."
    ),
    output_representative_fasta_directory: Path | None = typer.Option(
        None, "--output-representative-fasta-directory", help="Copy representative FASTA files into this directory."
    ),
    threads: int | None = typer.Option(None, "--threads", "-t", min=1, help="Worker threads."),
    force: bool | None = typer.Option(None, "--force", help="Overwrite existing output files."),
    log_file: Path | None = typer.Option(None, "--log-file", help="Write JSON logs to this file."),
    verbose: bool | None = typer.Option(None, "--verbose", "-v", help="Print extra debug logging information."),
    quiet: bool | None = typer.Option(None, "--quiet", "-q", help="Only show errors."),
) -> None:
    if ctx.invoked_subcommand is not None:
        return

    exit_code = run_cluster(
        config_path=config,
        genome_fasta_files=split_path_values(genome_fasta_files),
        genome_fasta_directory=genome_fasta_directory,
        genome_fasta_list=genome_fasta_list,
        genome_fasta_extension=genome_fasta_extension,
        checkm_tab_table=checkm_tab_table,
        ani=ani,
        minhash_prethreshold=minhash_prethreshold,
        method=method,
        min_completeness=min_completeness,
        max_contamination=max_contamination,
        quality_formula=quality_formula,
        num_hashes=num_hashes,
        kmer_length=kmer_length,
        output_cluster_definition=output_cluster_definition,
        output_representative_list=output_representative_list,
        output_representative_fasta_directory=output_representative_fasta_directory,
        threads=threads,
        force=force,
        log_file=log_file,
        verbose=verbose,
        quiet=quiet,
    )
    raise typer.Exit(exit_code)
