"""File output handler for decision records."""

from __future__ import annotations

import logging
from pathlib import Path

from concord.output.record import adr_filename
from concord.schemas.decision import Decision

logger = logging.getLogger(__name__)


def write_record(decision: Decision, markdown: str, output_dir: str) -> Path:
    """Write a rendered record to ``output_dir/ADR-<number>-<slug>.md``.

    Creates the directory if needed and overwrites an existing record
    for the same decision.

    Returns:
        Path of the written file.
    """
    base = Path(output_dir).expanduser()
    base.mkdir(parents=True, exist_ok=True)
    path = base / adr_filename(decision)
    path.write_text(markdown, encoding="utf-8")
    logger.info("Wrote decision record %s", path)
    return path
