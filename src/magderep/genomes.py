from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from magderep.exceptions import MagDerepUsageError, NoGenomesFoundError
from magderep.logging import get_logger
from magderep.utils.validation import has_fasta_suffix, validate_existing_file

logger = get_logger("magderep.genomes")


@dataclass(frozen=True, slots=True)
class Genome:
    """A genome FASTA and its stable position in the input list."""

    index: int
    path: Path

    def __str__(self) -> str:
        return str(self.path)


def _resolve_path(base_dir: Path, raw_value: str) -> Path:
    path = Path(raw_value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def _genomes_from_paths(paths: Sequence[Path]) -> list[Genome]:
    genomes: list[Genome] = []
    for idx, path in enumerate(paths):
        validate_existing_file(path, "Genome FASTA file")
        if not has_fasta_suffix(path):
            logger.warning("Genome file %s does not have a usual FASTA extension", path)
        genomes.append(Genome(index=idx, path=path))
    return genomes


def discover_fasta_directory(directory: Path, extension: str) -> list[Path]:
    """List files in `directory` ending in `.<extension>`, sorted by name."""

    if not directory.is_dir():
        raise MagDerepUsageError(f"Genome FASTA directory does not exist: {directory}")

    suffix = "." + extension.lstrip(".")
    found: list[Path] = []
    for entry in sorted(directory.iterdir(), key=lambda path: path.name):
        if entry.is_file() and entry.name.endswith(suffix):
            found.append(entry)
        else:
            logger.info(
                "Not using directory entry '%s' as a genome FASTA file, as it does not end with the extension '%s'",
                entry,
                extension,
            )

    if not found:
        raise NoGenomesFoundError(
            f"Found 0 genomes with extension '{extension}' in the genome FASTA directory {directory}, cannot continue."
        )
    return found


def read_fasta_list(list_path: Path) -> list[Path]:
    """Read one genome path per line; relative paths resolve against the current directory."""

    validate_existing_file(list_path, "Genome FASTA list")
    paths: list[Path] = []
    for raw_line in list_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        paths.append(_resolve_path(Path.cwd(), line))

    if not paths:
        raise NoGenomesFoundError(f"Genome FASTA list is empty: {list_path}")
    return paths


def resolve_genomes(
    *,
    fasta_files: Sequence[Path] | None = None,
    fasta_directory: Path | None = None,
    fasta_list: Path | None = None,
    extension: str = "fna",
) -> list[Genome]:
    """Build the ordered genome list from exactly one input mode."""

    provided = [
        name
        for name, value in (
            ("--genome-fasta-files", fasta_files),
            ("--genome-fasta-directory", fasta_directory),
            ("--genome-fasta-list", fasta_list),
        )
        if value
    ]
    if not provided:
        raise MagDerepUsageError(
            "Path(s) to genome FASTA files must be given with --genome-fasta-files, "
            "--genome-fasta-directory or --genome-fasta-list."
        )
    if len(provided) > 1:
        raise MagDerepUsageError(f"Options {', '.join(provided)} are mutually exclusive.")

    if fasta_directory is not None:
        paths = discover_fasta_directory(fasta_directory, extension)
    elif fasta_list is not None:
        paths = read_fasta_list(fasta_list)
    else:
        paths = list(fasta_files or [])

    return _genomes_from_paths(paths)
