from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass
from itertools import combinations
from typing import Callable, Iterator, Sequence

from magderep.checkm import GenomeQuality, QualityTable
from magderep.dereplicate.engine import (
    ClusterMethod,
    ClusteringStats,
    ClusterThresholds,
    ExactAni,
    GreedyClusterer,
)
from magderep.dereplicate.minhash import (
    DEFAULT_KMER_LENGTH,
    DEFAULT_NUM_HASHES,
    SketchCache,
    Sketcher,
    sketch_genome,
)
from magderep.dereplicate.pool import worker_pool
from magderep.dereplicate.quality import (
    QualityFormula,
    filter_genomes,
    lookup_qualities,
    rank_genomes,
    score_genomes,
)
from magderep.genomes import Genome
from magderep.logging import get_logger
from magderep.runners.base import ExactAniOracle

logger = get_logger("magderep.pipeline")


@dataclass(frozen=True, slots=True)
class DistanceRecord:
    genome_a: Genome
    genome_b: Genome
    approximate_ani: float
    quality_a: GenomeQuality
    quality_b: GenomeQuality


@dataclass(frozen=True, slots=True)
class ClusterResult:
    clusters: list[list[int]]
    ranking: list[int]
    excluded: list[int]
    stats: ClusteringStats


def _exact_by_index(oracle: ExactAniOracle, genomes: Sequence[Genome]) -> ExactAni:
    paths = {genome.index: genome.path for genome in genomes}

    def exact_ani(left: int, right: int) -> float | None:
        return oracle.ani(paths[left], paths[right])

    return exact_ani


def run_clustering(
    genomes: Sequence[Genome],
    quality: QualityTable | None,
    *,
    thresholds: ClusterThresholds,
    method: ClusterMethod = ClusterMethod.MINHASH_FASTANI,
    num_hashes: int = DEFAULT_NUM_HASHES,
    kmer_length: int = DEFAULT_KMER_LENGTH,
    min_completeness: float = 0.0,
    max_contamination: float | None = None,
    quality_formula: QualityFormula = QualityFormula.COMPLETENESS_5CONTAMINATION,
    exact_oracle: ExactAniOracle | None = None,
    sketcher: Sketcher = sketch_genome,
    executor: Executor | None = None,
    on_sketched: Callable[[int, int], None] | None = None,
) -> ClusterResult:
    """Filter, rank and greedily cluster genomes, keeping the intermediate results."""

    if method.two_stage and exact_oracle is None:
        raise ValueError(f"Method {method.value} needs an exact ANI oracle")

    pool = executor if executor is not None else worker_pool()

    passed = filter_genomes(
        genomes,
        quality,
        min_completeness=min_completeness,
        max_contamination=max_contamination,
    )
    passed_indices = {genome.index for genome in passed}
    excluded = [genome.index for genome in genomes if genome.index not in passed_indices]

    if not passed:
        logger.warning("No genomes passed the quality thresholds; nothing to cluster")

    scores = score_genomes(passed, quality, formula=quality_formula)
    ranking = rank_genomes(passed, scores)

    sketches = SketchCache(passed, num_hashes=num_hashes, kmer_length=kmer_length, sketcher=sketcher)
    if len(ranking) > 1:
        logger.info("Sketching %d genomes ..", len(ranking))
        sketches.prefetch(ranking, pool, on_sketched=on_sketched)

    exact_ani: ExactAni | None = None
    if exact_oracle is not None and method.two_stage:
        exact_ani = _exact_by_index(exact_oracle, passed)

    clusterer = GreedyClusterer(
        approximate_ani=sketches.approximate_ani,
        exact_ani=exact_ani,
        thresholds=thresholds,
        two_stage=method.two_stage,
        executor=pool,
    )
    clusters = clusterer.cluster(ranking)

    logger.info(
        "Found %d genome clusters from %d genomes (%d MinHash comparisons, %d exact ANI comparisons)",
        len(clusters),
        len(ranking),
        clusterer.stats.approximate_comparisons,
        clusterer.stats.exact_comparisons,
    )
    return ClusterResult(clusters=clusters, ranking=ranking, excluded=excluded, stats=clusterer.stats)


def cluster(
    genomes: Sequence[Genome],
    quality: QualityTable | None,
    ani_threshold: float,
    minhash_prethreshold: float = 90.0,
    method: ClusterMethod | str = ClusterMethod.MINHASH_FASTANI,
    num_hashes: int = DEFAULT_NUM_HASHES,
    kmer_length: int = DEFAULT_KMER_LENGTH,
    *,
    min_completeness: float = 0.0,
    max_contamination: float | None = None,
    quality_formula: QualityFormula = QualityFormula.COMPLETENESS_5CONTAMINATION,
    exact_oracle: ExactAniOracle | None = None,
    sketcher: Sketcher = sketch_genome,
    executor: Executor | None = None,
    on_sketched: Callable[[int, int], None] | None = None,
) -> list[list[int]]:
    """Cluster genomes; each cluster lists genome indices, representative first."""

    result = run_clustering(
        genomes,
        quality,
        thresholds=ClusterThresholds(ani=ani_threshold, minhash_prethreshold=minhash_prethreshold),
        method=ClusterMethod(method),
        num_hashes=num_hashes,
        kmer_length=kmer_length,
        min_completeness=min_completeness,
        max_contamination=max_contamination,
        quality_formula=quality_formula,
        exact_oracle=exact_oracle,
        sketcher=sketcher,
        executor=executor,
        on_sketched=on_sketched,
    )
    return result.clusters


def report_distances(
    genomes: Sequence[Genome],
    quality: QualityTable,
    num_hashes: int = DEFAULT_NUM_HASHES,
    kmer_length: int = DEFAULT_KMER_LENGTH,
    *,
    sketcher: Sketcher = sketch_genome,
    executor: Executor | None = None,
    on_sketched: Callable[[int, int], None] | None = None,
) -> Iterator[DistanceRecord]:
    """Yield the MinHash ANI of every unordered genome pair with both qualities.

    Every genome must resolve to a quality record; this is checked and all
    sketches are built before the first record is produced.
    """

    qualities = lookup_qualities(genomes, quality)
    logger.info("Linked %d genomes to their quality records", len(qualities))

    sketches = SketchCache(genomes, num_hashes=num_hashes, kmer_length=kmer_length, sketcher=sketcher)
    pool = executor if executor is not None else worker_pool()
    sketches.prefetch([genome.index for genome in genomes], pool, on_sketched=on_sketched)

    return _iter_distance_records(genomes, qualities, sketches)


def _iter_distance_records(
    genomes: Sequence[Genome],
    qualities: dict[int, GenomeQuality],
    sketches: SketchCache,
) -> Iterator[DistanceRecord]:
    for left, right in combinations(genomes, 2):
        yield DistanceRecord(
            genome_a=left,
            genome_b=right,
            approximate_ani=sketches.approximate_ani(left.index, right.index),
            quality_a=qualities[left.index],
            quality_b=qualities[right.index],
        )
