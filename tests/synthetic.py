"""Seeded random genomes for tests."""

from __future__ import annotations

import random
from pathlib import Path

BASES = "ACGT"


def random_sequence(length: int, seed: int) -> str:
    rng = random.Random(seed)
    return "".join(rng.choice(BASES) for _ in range(length))


def mutate_sequence(sequence: str, rate: float, seed: int) -> str:
    """Substitute roughly `rate` of positions with a different base."""

    rng = random.Random(seed)
    bases = list(sequence)
    for idx, base in enumerate(bases):
        if rng.random() < rate:
            bases[idx] = rng.choice([other for other in BASES if other != base])
    return "".join(bases)


def write_fasta(path: Path, contigs: dict[str, str]) -> Path:
    lines: list[str] = []
    for header, sequence in contigs.items():
        lines.append(f">{header}")
        lines.extend(sequence[start : start + 80] for start in range(0, len(sequence), 80))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
