from __future__ import annotations

import tempfile
from pathlib import Path

from magderep.exceptions import ExactAniError
from magderep.runners.base import ToolRunner


def parse_fastani_output(text: str) -> float | None:
    """ANI from fastANI's tabular output; empty output means no ANI was reported."""

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return None

    fields = lines[0].split("\t")
    if len(fields) < 3:
        raise ExactAniError(f"Unexpected fastANI output line: {lines[0]!r}")
    try:
        return float(fields[2])
    except ValueError as exc:
        raise ExactAniError(f"Unable to parse ANI value from fastANI output: {lines[0]!r}") from exc


class FastANIRunner(ToolRunner):
    """Wrapper around fastANI for one query/reference pair."""

    def __init__(self, executable: str = "fastANI", *, threads: int = 1) -> None:
        super().__init__(executable)
        self.threads = threads

    def ani(self, query: Path, reference: Path) -> float | None:
        with tempfile.TemporaryDirectory(prefix="magderep-fastani-") as tmp_dir:
            output_path = Path(tmp_dir) / "fastani.tsv"
            self.run_for_pair(
                [
                    "-q",
                    query,
                    "-r",
                    reference,
                    "-t",
                    str(self.threads),
                    "-o",
                    output_path,
                ],
                query=query,
                reference=reference,
            )
            if not output_path.exists():
                return None
            ani = parse_fastani_output(output_path.read_text(encoding="utf-8"))

        self.logger.debug("fastANI %s vs %s: %s", query, reference, ani)
        return ani
