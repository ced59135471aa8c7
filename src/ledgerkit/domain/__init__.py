"""Domain layer for ledgerkit.

Services are imported lazily: the database layer imports the entity and
error modules of this package, and the services import the database layer.
"""

_SERVICES = {
    "AccountService": "ledgerkit.domain.account",
    "BulkWriteCoordinator": "ledgerkit.domain.bulk",
    "LedgerService": "ledgerkit.domain.ledger",
    "SplitService": "ledgerkit.domain.split",
    "TransactionNumberAllocator": "ledgerkit.domain.numbering",
    "YearEndBalanceCache": "ledgerkit.domain.year_end_cache",
}

__all__ = list(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        import importlib

        return getattr(importlib.import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
