"""Domain layer for allocit application.

Services are imported lazily so that the database layer can import
``allocit.domain.entities`` without pulling in the services that depend on it.
"""

_SERVICES = {
    "TransactionService": "allocit.domain.transaction",
    "CategoryService": "allocit.domain.category",
    "AllocationRuleService": "allocit.domain.rules",
    "RuleResolver": "allocit.domain.rules",
    "ConditionMatcher": "allocit.domain.matching",
    "BulkBatchProcessor": "allocit.domain.batch",
}

__all__ = list(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        import importlib

        return getattr(importlib.import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
