from __future__ import annotations

import math
import threading
from concurrent.futures import Executor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Sequence

from sourmash import MinHash

from magderep.dereplicate.fasta import iter_fasta_records
from magderep.exceptions import FastaFormatError, SketchError, SketchParameterMismatchError
from magderep.genomes import Genome
from magderep.logging import get_logger

DEFAULT_NUM_HASHES = 1000
DEFAULT_KMER_LENGTH = 21

logger = get_logger("magderep.minhash")


@dataclass(frozen=True, slots=True)
class Sketch:
    """Bottom-k MinHash sketch: the smallest distinct canonical k-mer hashes, sorted."""

    name: str
    num_hashes: int
    kmer_length: int
    hashes: tuple[int, ...]

    def __len__(self) -> int:
        return len(self.hashes)


Sketcher = Callable[[Path, int, int], Sketch]


def sketch_sequences(name: str, sequences: Iterable[str], *, num_hashes: int, kmer_length: int) -> Sketch:
    """Sketch sequences with the sourmash MinHash core.

    Each sequence is hashed on its own, so k-mers never span two sequences.
    K-mers containing anything other than ACGT are skipped.
    """

    if num_hashes <= 0:
        raise ValueError(f"num_hashes must be positive, got {num_hashes}")

    minhash = MinHash(n=num_hashes, ksize=kmer_length)
    for sequence in sequences:
        if len(sequence) >= kmer_length:
            minhash.add_sequence(sequence, force=True)

    return Sketch(
        name=name,
        num_hashes=num_hashes,
        kmer_length=kmer_length,
        hashes=tuple(sorted(minhash.hashes)),
    )


def sketch_genome(path: Path, num_hashes: int, kmer_length: int) -> Sketch:
    """Sketch every contig of a genome FASTA; k-mers never span contigs."""

    try:
        sketch = sketch_sequences(
            str(path),
            (record.sequence for record in iter_fasta_records(path)),
            num_hashes=num_hashes,
            kmer_length=kmer_length,
        )
    except (OSError, UnicodeDecodeError, FastaFormatError) as exc:
        raise SketchError(f"Failed to sketch genome {path}: {exc}") from exc

    if not sketch.hashes:
        logger.warning("Genome %s yielded no %d-mers; its ANI to every genome is 0", path, kmer_length)
    return sketch


def _check_compatible(left: Sketch, right: Sketch) -> None:
    if left.num_hashes != right.num_hashes or left.kmer_length != right.kmer_length:
        raise SketchParameterMismatchError(
            f"Cannot compare sketches built with different parameters: {left.name} "
            f"(num_hashes={left.num_hashes}, k={left.kmer_length}) vs {right.name} "
            f"(num_hashes={right.num_hashes}, k={right.kmer_length})"
        )


def jaccard_estimate(left: Sketch, right: Sketch) -> float:
    """Estimate Jaccard similarity from the bottom `num_hashes` of the union of both sketches."""

    _check_compatible(left, right)
    a = left.hashes
    b = right.hashes
    size = left.num_hashes

    i = j = common = seen = 0
    while seen < size and i < len(a) and j < len(b):
        if a[i] == b[j]:
            common += 1
            i += 1
            j += 1
        elif a[i] < b[j]:
            i += 1
        else:
            j += 1
        seen += 1
    seen += min(size - seen, (len(a) - i) + (len(b) - j))

    if seen == 0:
        return 0.0
    return common / seen


def mash_distance(jaccard: float, kmer_length: int) -> float:
    if jaccard <= 0.0:
        return 1.0
    distance = (-1.0 / float(kmer_length)) * math.log((2.0 * jaccard) / (1.0 + jaccard))
    return max(0.0, min(1.0, distance))


def approximate_ani(left: Sketch, right: Sketch) -> float:
    """MinHash-derived ANI percentage between two genomes."""

    jaccard = jaccard_estimate(left, right)
    return 100.0 * (1.0 - mash_distance(jaccard, left.kmer_length))


class SketchCache:
    """Lazily built sketches for one run, keyed by genome index."""

    def __init__(
        self,
        genomes: Sequence[Genome],
        *,
        num_hashes: int = DEFAULT_NUM_HASHES,
        kmer_length: int = DEFAULT_KMER_LENGTH,
        sketcher: Sketcher = sketch_genome,
    ) -> None:
        self.num_hashes = num_hashes
        self.kmer_length = kmer_length
        self._sketcher = sketcher
        self._paths = {genome.index: genome.path for genome in genomes}
        self._sketches: dict[int, Sketch] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sketches)

    def _store(self, index: int, sketch: Sketch) -> Sketch:
        with self._lock:
            return self._sketches.setdefault(index, sketch)

    def get(self, index: int) -> Sketch:
        with self._lock:
            cached = self._sketches.get(index)
        if cached is not None:
            return cached
        return self._store(index, self._sketcher(self._paths[index], self.num_hashes, self.kmer_length))

    def prefetch(
        self,
        indices: Iterable[int],
        executor: Executor,
        *,
        on_sketched: Callable[[int, int], None] | None = None,
    ) -> None:
        """Sketch all missing genomes in parallel; the first failure propagates.

        `on_sketched(completed, total)` is called from this thread after each sketch.
        """

        with self._lock:
            missing = [index for index in indices if index not in self._sketches]

        futures = {
            executor.submit(self._sketcher, self._paths[index], self.num_hashes, self.kmer_length): index
            for index in missing
        }
        try:
            for completed, future in enumerate(as_completed(futures), start=1):
                self._store(futures[future], future.result())
                if on_sketched is not None:
                    on_sketched(completed, len(futures))
        finally:
            for future in futures:
                future.cancel()

    def approximate_ani(self, left: int, right: int) -> float:
        return approximate_ani(self.get(left), self.get(right))
