"""Collection handles and their client access policy."""

from .access import AccessRules, MUTATIONS
from .collection import Collection, CompiledSchema

__all__ = ["AccessRules", "Collection", "CompiledSchema", "MUTATIONS"]
