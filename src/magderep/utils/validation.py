from __future__ import annotations

from pathlib import Path

from magderep.exceptions import InputResolutionError

FASTA_SUFFIXES = (".fa", ".fasta", ".fna", ".fa.gz", ".fasta.gz", ".fna.gz")


def has_fasta_suffix(path: Path) -> bool:
    lowered = path.name.lower()
    return any(lowered.endswith(suffix) for suffix in FASTA_SUFFIXES)


def validate_existing_file(path: Path, label: str) -> None:
    if not path.exists():
        raise InputResolutionError(f"{label} does not exist: {path}")
    if not path.is_file():
        raise InputResolutionError(f"{label} is not a file: {path}")


def fasta_stem(path: Path | str) -> str:
    """File name without directory, an optional `.gz` and the final extension."""

    name = Path(path).name
    if name.lower().endswith(".gz"):
        name = name[: -len(".gz")]
    return Path(name).stem
