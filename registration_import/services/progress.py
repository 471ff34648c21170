from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm

"""Row progress bar.

Shown only when stdout is a terminal; piped or CI output gets plain log lines
with no carriage-return noise. The postfix carries the running
processed/skipped/duplicate counters.
"""

__all__ = [
    "RowProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class RowProgress:
    def __init__(self, total_rows: int, *, description: str = "Importing rows") -> None:
        self.total_rows = total_rows
        self.done = 0
        self.pbar: Any = None
        if is_tty_enabled():
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                ncols=80,
                ascii=True,
                leave=True,
            )

    def advance(self, **counters: int) -> None:
        self.done += 1
        if self.pbar is None:
            return
        self.pbar.update(1)
        if counters:
            self.pbar.set_postfix(**counters)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> RowProgress:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
