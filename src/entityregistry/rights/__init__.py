"""Right verbs, grant storage and effective-rights aggregation.

Defines:
- Rights: The five verbs (view/edit/create/delete/purge)
- TRASHABLE / MAPPED_SUPERCLASS: Well-known capability tag and marker
- IMPLIED_BY_TAG: Capability tag → verbs it always adds
- RightsStorage / InMemoryRightsStorage: Grant rows and their reduction
- RightsAggregator: Caller + subject → effective rights
"""

from .aggregator import RightsAggregator
from .constants import MAPPED_SUPERCLASS, TRASHABLE, Rights
from .inheritance import IMPLIED_BY_TAG, basic_rights, stored_rights
from .storage import Grant, InMemoryRightsStorage, RightsStorage

__all__ = [
    "IMPLIED_BY_TAG",
    "MAPPED_SUPERCLASS",
    "TRASHABLE",
    "Grant",
    "InMemoryRightsStorage",
    "Rights",
    "RightsAggregator",
    "RightsStorage",
    "basic_rights",
    "stored_rights",
]
