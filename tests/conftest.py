from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterator

import pytest

from synthetic import mutate_sequence, random_sequence, write_fasta


@pytest.fixture
def executor() -> Iterator[ThreadPoolExecutor]:
    pool = ThreadPoolExecutor(max_workers=2)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def genome_set(tmp_path: Path) -> Callable[[], dict[str, Path]]:
    """Two pairs of near-identical genomes (a/b and c/d), unrelated across pairs."""

    def _build() -> dict[str, Path]:
        genomes_dir = tmp_path / "genomes"
        genomes_dir.mkdir(exist_ok=True)
        base_ab = random_sequence(12000, seed=1)
        base_cd = random_sequence(12000, seed=2)
        sequences = {
            "a": base_ab,
            "b": mutate_sequence(base_ab, 0.005, seed=3),
            "c": base_cd,
            "d": mutate_sequence(base_cd, 0.005, seed=4),
        }
        return {
            name: write_fasta(genomes_dir / f"{name}.fna", {f"{name}_contig_1": sequence})
            for name, sequence in sequences.items()
        }

    return _build


@pytest.fixture
def checkm_table(tmp_path: Path) -> Callable[[dict[str, tuple[float, float]]], Path]:
    def _write(qualities: dict[str, tuple[float, float]]) -> Path:
        path = tmp_path / "checkm.tsv"
        lines = ["Bin Id\tMarker lineage\t# genomes\tCompleteness\tContamination\tStrain heterogeneity"]
        for bin_id, (completeness, contamination) in qualities.items():
            lines.append(f"{bin_id}\tk__Bacteria (UID203)\t5449\t{completeness}\t{contamination}\t0.00")
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write
