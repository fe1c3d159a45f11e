from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from magderep import __version__
from magderep.cli import app
from synthetic import random_sequence, write_fasta

runner = CliRunner()

QUALITIES = {"a": (90.0, 1.0), "b": (80.0, 1.0), "c": (70.0, 1.0), "d": (95.0, 1.0)}


def _definition(path: Path) -> list[tuple[str, str]]:
    rows = []
    for line in path.read_text(encoding="utf-8").splitlines():
        representative, member = line.split("\t")
        rows.append((Path(representative).stem, Path(member).stem))
    return rows


def test_root_help_smoke() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "cluster" in result.stdout
    assert "dist" in result.stdout


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"magderep {__version__}" in result.stdout


def test_cluster_writes_definition_and_representatives(genome_set, checkm_table, tmp_path: Path) -> None:
    paths = genome_set()
    definition = tmp_path / "clusters.tsv"
    representatives = tmp_path / "reps.txt"
    reps_dir = tmp_path / "reps"

    result = runner.invoke(
        app,
        [
            "cluster",
            "--genome-fasta-directory",
            str(paths["a"].parent),
            "--checkm-tab-table",
            str(checkm_table(QUALITIES)),
            "--method",
            "minhash",
            "--ani",
            "95",
            "--threads",
            "2",
            "--quiet",
            "--output-cluster-definition",
            str(definition),
            "--output-representative-list",
            str(representatives),
            "--output-representative-fasta-directory",
            str(reps_dir),
        ],
    )

    assert result.exit_code == 0, result.output
    assert _definition(definition) == [("d", "d"), ("d", "c"), ("a", "a"), ("a", "b")]
    assert [Path(line).stem for line in representatives.read_text(encoding="utf-8").splitlines()] == ["d", "a"]
    assert sorted(path.name for path in reps_dir.iterdir()) == ["a.fna", "d.fna"]


def test_cluster_min_completeness_excludes_genomes(genome_set, checkm_table, tmp_path: Path) -> None:
    paths = genome_set()
    definition = tmp_path / "clusters.tsv"

    result = runner.invoke(
        app,
        [
            "cluster",
            "-f",
            ",".join(str(paths[name]) for name in "abcd"),
            "--checkm-tab-table",
            str(checkm_table(QUALITIES)),
            "--min-completeness",
            "75",
            "--method",
            "minhash",
            "--ani",
            "95",
            "--quiet",
            "--output-cluster-definition",
            str(definition),
        ],
    )

    assert result.exit_code == 0, result.output
    assert _definition(definition) == [("d", "d"), ("a", "a"), ("a", "b")]


def test_cluster_refuses_to_overwrite_without_force(genome_set, tmp_path: Path) -> None:
    paths = genome_set()
    definition = tmp_path / "clusters.tsv"
    definition.write_text("existing\n", encoding="utf-8")
    args = [
        "cluster",
        "--genome-fasta-directory",
        str(paths["a"].parent),
        "--method",
        "minhash",
        "--ani",
        "95",
        "--quiet",
        "--output-cluster-definition",
        str(definition),
    ]

    result = runner.invoke(app, args)
    assert result.exit_code != 0
    assert definition.read_text(encoding="utf-8") == "existing\n"

    result = runner.invoke(app, [*args, "--force"])
    assert result.exit_code == 0, result.output
    assert len(_definition(definition)) == 4


def test_cluster_missing_quality_record_fails(genome_set, checkm_table, tmp_path: Path) -> None:
    paths = genome_set()

    result = runner.invoke(
        app,
        [
            "cluster",
            "--genome-fasta-directory",
            str(paths["a"].parent),
            "--checkm-tab-table",
            str(checkm_table({"a": (90.0, 1.0)})),
            "--method",
            "minhash",
            "--ani",
            "95",
            "--quiet",
            "--output-cluster-definition",
            str(tmp_path / "clusters.tsv"),
        ],
    )

    assert result.exit_code == 2
    assert not (tmp_path / "clusters.tsv").exists()


def test_cluster_empty_directory_fails(tmp_path: Path) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()

    result = runner.invoke(app, ["cluster", "--genome-fasta-directory", str(empty), "--ani", "95", "--quiet"])

    assert result.exit_code == 2


def test_cluster_sources_are_mutually_exclusive(genome_set) -> None:
    paths = genome_set()

    result = runner.invoke(
        app,
        [
            "cluster",
            "-f",
            str(paths["a"]),
            "--genome-fasta-directory",
            str(paths["a"].parent),
            "--ani",
            "95",
            "--method",
            "minhash",
        ],
    )

    assert result.exit_code == 2


def test_cluster_rejects_prethreshold_above_ani(genome_set) -> None:
    paths = genome_set()

    result = runner.invoke(
        app,
        [
            "cluster",
            "--genome-fasta-directory",
            str(paths["a"].parent),
            "--ani",
            "95",
            "--minhash-prethreshold",
            "97",
        ],
    )

    assert result.exit_code == 2


def test_dist_writes_pairwise_table(genome_set, checkm_table, tmp_path: Path) -> None:
    paths = genome_set()
    output = tmp_path / "dist.tsv"

    result = runner.invoke(
        app,
        [
            "dist",
            "--genome-fasta-directory",
            str(paths["a"].parent),
            "--checkm-tab-table",
            str(checkm_table(QUALITIES)),
            "--quiet",
            "-o",
            str(output),
        ],
    )

    assert result.exit_code == 0, result.output
    lines = output.read_text(encoding="utf-8").splitlines()
    assert lines[0].split("\t") == [
        "genome_a",
        "genome_b",
        "ani",
        "completeness_a",
        "contamination_a",
        "completeness_b",
        "contamination_b",
    ]
    rows = [line.split("\t") for line in lines[1:]]
    assert len(rows) == 6
    first = rows[0]
    assert (Path(first[0]).stem, Path(first[1]).stem) == ("a", "b")
    assert float(first[2]) > 97.0
    assert first[3:] == ["90.00", "1.00", "80.00", "1.00"]


def test_dist_requires_quality_table(genome_set) -> None:
    paths = genome_set()

    result = runner.invoke(app, ["dist", "--genome-fasta-directory", str(paths["a"].parent), "--quiet"])

    assert result.exit_code == 2


def test_cluster_rejects_shared_file_names_before_clustering(tmp_path: Path) -> None:
    first = tmp_path / "run1" / "bin.fna"
    second = tmp_path / "run2" / "bin.fna"
    for path, seed in ((first, 41), (second, 42)):
        path.parent.mkdir()
        write_fasta(path, {"c1": random_sequence(3000, seed=seed)})
    definition = tmp_path / "clusters.tsv"
    reps_dir = tmp_path / "reps"

    result = runner.invoke(
        app,
        [
            "cluster",
            "-f",
            f"{first},{second}",
            "--method",
            "minhash",
            "--ani",
            "95",
            "--quiet",
            "--output-cluster-definition",
            str(definition),
            "--output-representative-fasta-directory",
            str(reps_dir),
        ],
    )

    assert result.exit_code == 2
    assert not definition.exists()
    assert not reps_dir.exists()


def test_cluster_checks_representative_directory_before_clustering(genome_set, tmp_path: Path) -> None:
    paths = genome_set()
    definition = tmp_path / "clusters.tsv"
    reps_dir = tmp_path / "reps"
    reps_dir.mkdir()
    (reps_dir / "c.fna").write_text(">old\nACGT\n", encoding="utf-8")

    result = runner.invoke(
        app,
        [
            "cluster",
            "--genome-fasta-directory",
            str(paths["a"].parent),
            "--method",
            "minhash",
            "--ani",
            "95",
            "--quiet",
            "--output-cluster-definition",
            str(definition),
            "--output-representative-fasta-directory",
            str(reps_dir),
        ],
    )

    assert result.exit_code == 2
    assert not definition.exists()
    assert (reps_dir / "c.fna").read_text(encoding="utf-8") == ">old\nACGT\n"


def test_quiet_run_skips_startup_banner(genome_set, tmp_path: Path) -> None:
    paths = genome_set()
    args = [
        "cluster",
        "--genome-fasta-directory",
        str(paths["a"].parent),
        "--method",
        "minhash",
        "--ani",
        "95",
        "--force",
        "--output-cluster-definition",
        str(tmp_path / "clusters.tsv"),
    ]

    quiet = runner.invoke(app, [*args, "--quiet"])
    assert quiet.exit_code == 0, quiet.output
    assert "CLI Start" not in quiet.output

    loud = runner.invoke(app, args)
    assert loud.exit_code == 0, loud.output
    assert "CLI Start" in loud.output
