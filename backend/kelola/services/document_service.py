# Overview: Service-layer operations for document numbers; allocates unique invoice numbers.

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ValidationError
from ..models import DocumentSequence
from ..time_utils import utcnow


# Unique constraints two writers allocating the same number can trip over
NUMBER_CLASH_MARKERS = ("invoice_number", "document_sequences", "uq_docseq_type_period")


class DocumentNumberClash(Exception):
    """Another writer took the same document number first."""


def is_number_clash(exc: IntegrityError) -> bool:
    message = str(getattr(exc, "orig", None) or exc)
    return any(marker in message for marker in NUMBER_CLASH_MARKERS)


@contextmanager
def number_clash_guard():
    """
    Turn a uniqueness failure on the document number into DocumentNumberClash
    so callers can retry it. Any other IntegrityError propagates unchanged.
    """
    try:
        yield
    except IntegrityError as exc:
        if is_number_clash(exc):
            raise DocumentNumberClash(str(exc.orig)) from exc
        raise


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    pad: int = 4,
    now: datetime | None = None,
) -> str:
    """
    Allocate the next number for a document type within the current day,
    e.g. INV-20261018-0001.

    Runs inside the caller's unit of work and does not commit. The
    increment is a single UPDATE, so concurrent callers serialize on the
    sequence row; a race on the first number of the day surfaces as an
    IntegrityError, which number_clash_guard() turns into a retryable
    DocumentNumberClash.
    """
    if not document_type:
        raise ValidationError("document_type is required")
    if not prefix:
        raise ValidationError("prefix is required")

    period = (now or utcnow()).strftime("%Y%m%d")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type, period=period)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = DocumentSequence(document_type=document_type, period=period, next_number=2)
        db.session.add(seq)
        db.session.flush()
        next_num = 1

    return f"{prefix}-{period}-{next_num:0{pad}d}"
