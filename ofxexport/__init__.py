"""Export accounts and transactions from the local store as OFX."""

__all__: list[str] = [
    "build_ofx",
    "config",
    "date_time",
    "models",
    "selector",
    "store",
]
