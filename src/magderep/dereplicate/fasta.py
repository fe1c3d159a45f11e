from __future__ import annotations

import gzip
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from magderep.exceptions import FastaFormatError

NUCLEOTIDES = frozenset("ACGT")


@dataclass(frozen=True, slots=True)
class FastaRecord:
    """Simple FASTA record."""

    header: str
    sequence: str


@dataclass(frozen=True, slots=True)
class AssemblyStats:
    """Assembly summary statistics for one genome FASTA."""

    genome_size: int
    contig_count: int
    n50: int
    ambiguous_bases: int


def _open_text(path: Path):
    if path.suffix == ".gz":
        return gzip.open(path, "rt", encoding="utf-8")
    return path.open("r", encoding="utf-8")


def iter_fasta_records(path: Path) -> Iterator[FastaRecord]:
    """Stream FASTA records, preserving order."""

    header: str | None = None
    seq_chunks: list[str] = []

    with _open_text(path) as handle:
        for line_number, raw_line in enumerate(handle, start=1):
            line = raw_line.strip()
            if not line:
                continue
            if line.startswith(">"):
                if header is not None:
                    yield FastaRecord(header=header, sequence="".join(seq_chunks).upper())
                header = line[1:].split()[0] if len(line) > 1 else ""
                seq_chunks = []
            elif header is None:
                raise FastaFormatError(
                    f"Sequence data before the first '>' header at line {line_number} of {path}"
                )
            else:
                seq_chunks.append(line)

    if header is not None:
        yield FastaRecord(header=header, sequence="".join(seq_chunks).upper())


def read_fasta_records(path: Path) -> list[FastaRecord]:
    return list(iter_fasta_records(path))


def compute_assembly_stats(records: Iterable[FastaRecord]) -> AssemblyStats:
    """Compute genome size, contig count, N50 and non-ACGT base count."""

    lengths: list[int] = []
    ambiguous = 0
    for record in records:
        lengths.append(len(record.sequence))
        ambiguous += sum(1 for base in record.sequence if base not in NUCLEOTIDES)

    lengths.sort(reverse=True)
    contig_count = len(lengths)
    genome_size = sum(lengths)

    if not lengths:
        return AssemblyStats(genome_size=0, contig_count=0, n50=0, ambiguous_bases=0)

    half = genome_size / 2
    cumulative = 0
    n50 = 0
    for length in lengths:
        cumulative += length
        if cumulative >= half:
            n50 = length
            break

    return AssemblyStats(
        genome_size=genome_size,
        contig_count=contig_count,
        n50=n50,
        ambiguous_bases=ambiguous,
    )


def assembly_stats_for_path(path: Path) -> AssemblyStats:
    try:
        return compute_assembly_stats(iter_fasta_records(path))
    except (OSError, UnicodeDecodeError) as exc:
        raise FastaFormatError(f"Unable to read genome FASTA {path}: {exc}") from exc
