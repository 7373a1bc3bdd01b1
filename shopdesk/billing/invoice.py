"""
shopdesk/billing/invoice.py
---------------------------
Concurrency-safe sales invoice number generation.

Format:  INV-YYYYMMDD-NNNN
Example: INV-20261017-0001, INV-20261017-0002, … INV-20261017-10000

Algorithm
─────────
1. Lock the InvoiceSequence row for the order date with SELECT … FOR UPDATE.
   Concurrent callers block until the first transaction commits.
2. If no row exists yet for that day, INSERT one with last_seq = 0 and
   lock it.
3. Increment last_seq by 1 and write it back.
4. Return the formatted invoice number.

The lock is released when the caller's transaction commits (or rolls back),
so the sequence only advances when the order INSERT actually commits.
"""
from datetime import date
from typing import Optional


def format_invoice_number(day: date, seq: int) -> str:
    return f"INV-{day:%Y%m%d}-{seq:04d}"


def generate_invoice_number(db_session, on: Optional[date] = None) -> str:
    """
    Generate the next invoice number for `on` (default: today).

    MUST be called inside an open SQLAlchemy transaction.

    Args:
        db_session: the active SQLAlchemy session (db.session)
        on:         order date the number belongs to

    Returns:
        str — e.g. "INV-20261017-0042"
    """
    from shopdesk.billing.models import InvoiceSequence

    day = on or date.today()
    key = f"{day:%Y%m%d}"

    seq_row = (
        db_session.query(InvoiceSequence)
        .filter(InvoiceSequence.day == key)
        .with_for_update()
        .first()
    )

    if seq_row is None:
        seq_row = InvoiceSequence(day=key, last_seq=0)
        db_session.add(seq_row)
        db_session.flush()

        seq_row = (
            db_session.query(InvoiceSequence)
            .filter(InvoiceSequence.day == key)
            .with_for_update()
            .first()
        )

    seq_row.last_seq += 1
    db_session.flush()

    return format_invoice_number(day, seq_row.last_seq)
