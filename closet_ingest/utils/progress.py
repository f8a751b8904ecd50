"""Optional user-facing progress messages."""

from typing import Callable


ProgressCallback = Callable[[str], None]


def report(on_progress: ProgressCallback | None, message: str) -> None:
    if on_progress is not None:
        on_progress(message)
