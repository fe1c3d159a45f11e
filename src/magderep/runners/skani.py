from __future__ import annotations

import re
from pathlib import Path

from magderep.exceptions import ExactAniError
from magderep.runners.base import ToolRunner


def parse_skani_ani_output(stdout: str) -> float | None:
    """Parse ANI from `skani dist` output; a header with no rows means no ANI was reported."""

    lines = [line.strip() for line in stdout.splitlines() if line.strip()]
    if not lines:
        return None

    header_tokens = re.split(r"\s+", lines[0].lower())
    if "ani" not in header_tokens:
        raise ExactAniError(f"Unexpected skani output header: {lines[0]!r}")
    if len(lines) < 2:
        return None

    ani_idx = header_tokens.index("ani")
    value_tokens = re.split(r"\s+", lines[1])
    if ani_idx >= len(value_tokens):
        raise ExactAniError(f"Unexpected skani output row: {lines[1]!r}")
    try:
        return float(value_tokens[ani_idx])
    except ValueError as exc:
        raise ExactAniError(f"Unable to parse ANI value from skani output: {lines[1]!r}") from exc


class SkaniRunner(ToolRunner):
    """Wrapper around `skani dist` for one query/reference pair."""

    def __init__(self, executable: str = "skani", *, threads: int = 1) -> None:
        super().__init__(executable)
        self.threads = threads

    def ani(self, query: Path, reference: Path) -> float | None:
        result = self.run_for_pair(
            ["dist", query, reference, "-t", str(self.threads)],
            query=query,
            reference=reference,
        )
        ani = parse_skani_ani_output(result.stdout)
        self.logger.debug("skani %s vs %s: %s", query, reference, ani)
        return ani
