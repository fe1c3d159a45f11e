from __future__ import annotations

import math
from pathlib import Path

import pytest

from magderep.checkm import GenomeQuality, QualityTable
from magderep.dereplicate.fasta import AssemblyStats
from magderep.dereplicate.quality import (
    NEUTRAL_SCORE,
    QualityFormula,
    composite_score,
    filter_genomes,
    rank_genomes,
    score_genomes,
)
from magderep.exceptions import MissingQualityError
from magderep.genomes import Genome
from synthetic import write_fasta


def _genomes(*names: str) -> list[Genome]:
    return [Genome(index=idx, path=Path(f"/data/{name}.fna")) for idx, name in enumerate(names)]


def _table(**qualities: tuple[float, float]) -> QualityTable:
    return QualityTable(
        {name: GenomeQuality(completeness=comp, contamination=cont) for name, (comp, cont) in qualities.items()}
    )


def test_composite_score_formulas() -> None:
    quality = GenomeQuality(completeness=95.0, contamination=2.0)
    stats = AssemblyStats(genome_size=5_000_000, contig_count=120, n50=50_000, ambiguous_bases=2_000)

    assert composite_score(quality) == pytest.approx(85.0)
    assert composite_score(quality, formula=QualityFormula.COMPLETENESS_4CONTAMINATION) == pytest.approx(87.0)
    assert composite_score(
        quality, formula=QualityFormula.PARKS2020_REDUCED, stats=stats
    ) == pytest.approx(85.0 - 6.0 - 0.1)
    assert composite_score(quality, formula=QualityFormula.DREP, stats=stats) == pytest.approx(
        85.0 + 0.5 * math.log10(50_000)
    )


def test_composite_score_is_monotonic() -> None:
    for formula in (QualityFormula.COMPLETENESS_5CONTAMINATION, QualityFormula.COMPLETENESS_4CONTAMINATION):
        low = composite_score(GenomeQuality(80.0, 5.0), formula=formula)
        assert composite_score(GenomeQuality(90.0, 5.0), formula=formula) > low
        assert composite_score(GenomeQuality(80.0, 1.0), formula=formula) > low


def test_assembly_formulas_need_stats() -> None:
    with pytest.raises(ValueError):
        composite_score(GenomeQuality(90.0, 1.0), formula=QualityFormula.DREP)


def test_filter_excludes_low_completeness_and_high_contamination() -> None:
    genomes = _genomes("a", "b", "c", "d")
    table = _table(a=(90.0, 1.0), b=(40.0, 0.0), c=(95.0, 12.0), d=(50.0, 10.0))

    kept = filter_genomes(genomes, table, min_completeness=50.0, max_contamination=10.0)

    assert [genome.path.stem for genome in kept] == ["a", "d"]


def test_filter_without_contamination_limit_keeps_contaminated() -> None:
    genomes = _genomes("a", "b")
    table = _table(a=(90.0, 80.0), b=(10.0, 0.0))

    kept = filter_genomes(genomes, table, min_completeness=20.0)

    assert [genome.index for genome in kept] == [0]


def test_filter_without_table_keeps_everything() -> None:
    genomes = _genomes("a", "b")

    assert filter_genomes(genomes, None, min_completeness=99.0) == genomes


def test_unmatched_genome_is_fatal() -> None:
    genomes = _genomes("a", "unknown")

    with pytest.raises(MissingQualityError) as excinfo:
        filter_genomes(genomes, _table(a=(90.0, 1.0)))

    assert excinfo.value.path.endswith("unknown.fna")
    assert excinfo.value.exit_code == 2


def test_rank_is_descending_and_stable() -> None:
    genomes = _genomes("a", "b", "c", "d", "e")
    scores = {0: 50.0, 1: 90.0, 2: 50.0, 3: 90.0, 4: 10.0}

    assert rank_genomes(genomes, scores) == [1, 3, 0, 2, 4]


def test_scores_without_table_are_neutral_so_input_order_is_kept() -> None:
    genomes = _genomes("c", "a", "b")

    scores = score_genomes(genomes, None)

    assert set(scores.values()) == {NEUTRAL_SCORE}
    assert rank_genomes(genomes, scores) == [0, 1, 2]


def test_score_genomes_reads_assembly_stats_when_needed(tmp_path: Path) -> None:
    fragmented = write_fasta(tmp_path / "frag.fna", {f"c{idx}": "ACGT" * 50 for idx in range(40)})
    contiguous = write_fasta(tmp_path / "contig.fna", {"c1": "ACGT" * 2000})
    genomes = [Genome(0, fragmented), Genome(1, contiguous)]
    table = _table(frag=(90.0, 1.0), contig=(90.0, 1.0))

    scores = score_genomes(genomes, table, formula=QualityFormula.PARKS2020_REDUCED)

    assert scores[0] == pytest.approx(85.0 - 2.0)
    assert scores[1] == pytest.approx(85.0 - 0.05)
    assert rank_genomes(genomes, scores) == [1, 0]
