from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping

from magderep.exceptions import InputResolutionError
from magderep.utils.validation import fasta_stem, validate_existing_file

NAME_COLUMNS = ("bin id", "name", "bin")


@dataclass(frozen=True, slots=True)
class GenomeQuality:
    completeness: float
    contamination: float


class QualityTable(Mapping[str, GenomeQuality]):
    """Completeness/contamination per bin id, from CheckM or CheckM2 output."""

    def __init__(self, records: Mapping[str, GenomeQuality]) -> None:
        self._records = dict(records)

    def __getitem__(self, bin_id: str) -> GenomeQuality:
        return self._records[bin_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def retrieve_via_fasta_path(self, fasta_path: Path | str) -> GenomeQuality | None:
        return self._records.get(fasta_stem(fasta_path))

    @classmethod
    def read_file_path(cls, path: Path) -> "QualityTable":
        """Parse a CheckM `--tab_table` or a CheckM2 `quality_report.tsv`."""

        validate_existing_file(path, "Quality table")

        with path.open("r", encoding="utf-8", newline="") as handle:
            reader = csv.DictReader(handle, delimiter="\t")
            if reader.fieldnames is None:
                raise InputResolutionError(f"Quality table has no header row: {path}")

            header_by_lower = {name.strip().lower(): name for name in reader.fieldnames}
            name_col = next(
                (header_by_lower[name] for name in NAME_COLUMNS if name in header_by_lower),
                None,
            )
            comp_col = header_by_lower.get("completeness")
            contam_col = header_by_lower.get("contamination")

            if name_col is None or comp_col is None or contam_col is None:
                raise InputResolutionError(
                    f"Quality table missing expected columns (Bin Id/Completeness/Contamination): {path}"
                )

            records: dict[str, GenomeQuality] = {}
            for row_number, row in enumerate(reader, start=2):
                name = (row.get(name_col) or "").strip()
                if name == "":
                    continue

                comp_raw = (row.get(comp_col) or "").strip()
                contam_raw = (row.get(contam_col) or "").strip()
                try:
                    completeness = float(comp_raw)
                    contamination = float(contam_raw)
                except ValueError as exc:
                    raise InputResolutionError(
                        f"Invalid completeness/contamination at row {row_number} in {path}: "
                        f"{comp_raw!r}, {contam_raw!r}"
                    ) from exc

                records[name] = GenomeQuality(completeness=completeness, contamination=contamination)

        return cls(records)
