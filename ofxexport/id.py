import hashlib
from uuid import uuid4


# ---------- ids ----------
def new_uid() -> str:
    return uuid4().hex


def _normalize_fitid(value) -> str:
    if value is None:
        return ""

    text = str(value).strip()
    return "" if not text or text.lower() == "nan" else text


def make_fitid(transaction) -> str:
    """Return the OFX ``FITID`` for *transaction*.

    The transaction uid is used when present; otherwise a stable hash of the
    fields that identify the transaction.
    """

    fitid = _normalize_fitid(getattr(transaction, "uid", None))
    if fitid:
        return fitid[:32]

    parts = [
        str(getattr(transaction, "account_uid", "")),
        str(getattr(transaction, "timestamp", "")),
        str(getattr(transaction, "amount", "")),
        str(getattr(transaction, "name", ""))[:64],
        str(getattr(transaction, "description", ""))[:64],
    ]
    return hashlib.md5("|".join(parts).encode()).hexdigest().upper()
