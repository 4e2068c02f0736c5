"""Domain layer for tallyup application."""

from importlib import import_module

# Services import the database layer, which imports domain.entities, so they
# are resolved lazily
_SERVICES = {
    "RuleService": "tallyup.domain.rules",
    "FlagStateManager": "tallyup.domain.flag_state",
    "DuplicateService": "tallyup.domain.duplicates",
    "TransferService": "tallyup.domain.transfers",
    "SimilarTransactionService": "tallyup.domain.similar",
    "CategorizationService": "tallyup.domain.categorization",
    "InstallmentService": "tallyup.domain.installments",
}

__all__ = list(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        return getattr(import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
