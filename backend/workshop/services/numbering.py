# backend/workshop/services/numbering.py
"""
Document numbers `{PREFIX}-{year}-{00000}`.

The next sequence is max(counter, highest existing row) + 1 for the year. The
counter row is kept even when documents are deleted, so a number is never
handed out twice.
"""
from __future__ import annotations

import logging
import re
from typing import Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from workshop.core.db import lock_for_update
from workshop.domain.constants import DOC_NUMBER_FORMAT
from workshop.domain.errors import ValidationError
from workshop.models import DocumentCounter

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<year>\d{4})-(?P<seq>\d{5,})$")


def format_number(prefix: str, year: int, seq: int) -> str:
    return DOC_NUMBER_FORMAT.format(prefix=prefix, year=year, seq=seq)


def parse_number(number: str) -> Tuple[str, int, int]:
    m = _NUMBER_RE.match((number or "").strip())
    if not m:
        raise ValidationError(f"Not a document number: {number!r}", number=number)
    return m.group("prefix"), int(m.group("year")), int(m.group("seq"))


def allocate(db: Session, prefix: str, year: int, *, year_col, seq_col) -> Tuple[str, int]:
    """
    Reserve the next number for (prefix, year). Flushes, does not commit;
    the caller's transaction owns the counter lock until it commits.
    `year_col` / `seq_col` are the owning table's year and sequence columns.
    """
    counter = lock_for_update(db, DocumentCounter, (prefix, year))
    if counter is None:
        counter = DocumentCounter(Prefix=prefix, Year=year, LastSeq=0)
        db.add(counter)

    existing_max = db.query(func.max(seq_col)).filter(year_col == year).scalar() or 0
    seq = max(int(counter.LastSeq or 0), int(existing_max)) + 1
    counter.LastSeq = seq
    db.flush()

    number = format_number(prefix, year, seq)
    logger.debug("Allocated document number %s", number)
    return number, seq
