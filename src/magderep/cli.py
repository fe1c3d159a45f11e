from __future__ import annotations

import typer

from magderep import __version__
from magderep.commands import cluster, dist

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Metagenome-assembled genome (MAG) dereplicator: cluster genomes by ANI and pick representatives.",
)

app.add_typer(cluster.app, name="cluster", help="Cluster FASTA files by average nucleotide identity.")
app.add_typer(dist.app, name="dist", help="Print pairwise MinHash ANI annotated with genome quality.")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show magderep version and exit."),
) -> None:
    if version:
        typer.echo(f"magderep {__version__}")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()
