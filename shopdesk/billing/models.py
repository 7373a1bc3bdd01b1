from shopdesk import db


class InvoiceSequence(db.Model):
    """
    One row per calendar day — holds the last-used sales invoice sequence.

    Why a dedicated table instead of "find the last order created today"?
    ─────────────────────────────────────────────────────────────────────
    Reading the latest order is NOT safe under concurrent writes:

        Tx A: last = INV-20261017-0015  →  next = 0016   ┐
        Tx B: last = INV-20261017-0015  →  next = 0016   ┘  ← duplicate invoice

    With this table + SELECT FOR UPDATE the second transaction waits for
    the first to commit and then reads 16, so it issues 0017.
    """
    __tablename__ = 'invoice_sequences'

    day      = db.Column(db.String(8), primary_key=True)   # YYYYMMDD
    last_seq = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<InvoiceSequence day={self.day} last_seq={self.last_seq}>"
