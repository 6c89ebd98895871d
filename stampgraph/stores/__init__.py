"""Persistent stores for generated artifacts and cached contracts."""

from .context_store import ContextStore, load_bundles, load_index
from .contract_cache import ContractCache

__all__ = ["ContextStore", "ContractCache", "load_bundles", "load_index"]
