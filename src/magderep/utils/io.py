from __future__ import annotations

import csv
import shutil
from pathlib import Path
from typing import Any, Iterable, Sequence, TextIO

from magderep.exceptions import MagDerepUsageError


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def check_overwrite(path: Path, force: bool) -> None:
    if path.exists() and not force:
        raise MagDerepUsageError(f"Refusing to overwrite existing file without --force: {path}")


def write_lines(path: Path, lines: Iterable[str], *, force: bool = False) -> Path:
    ensure_dir(path.parent)
    check_overwrite(path, force)
    with path.open("w", encoding="utf-8") as handle:
        for line in lines:
            handle.write(f"{line}\n")
    return path


def write_tsv_rows(
    handle: TextIO,
    rows: Iterable[Sequence[Any]],
    *,
    header: Sequence[str] | None = None,
) -> int:
    writer = csv.writer(handle, delimiter="\t", lineterminator="\n")
    if header is not None:
        writer.writerow(header)
    count = 0
    for row in rows:
        writer.writerow(list(row))
        count += 1
    return count


def write_tsv(
    path: Path,
    header: Sequence[str] | None,
    rows: Iterable[Sequence[Any]],
    *,
    force: bool = False,
) -> Path:
    ensure_dir(path.parent)
    check_overwrite(path, force)

    with path.open("w", encoding="utf-8", newline="") as handle:
        write_tsv_rows(handle, rows, header=header)

    return path


def copy_file(src: Path, dst: Path, *, force: bool = False) -> Path:
    ensure_dir(dst.parent)
    check_overwrite(dst, force)
    shutil.copyfile(src, dst)
    return dst
