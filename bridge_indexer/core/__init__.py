"""
Core functionality for bridge event extraction, correlation and indexing.
"""

from bridge_indexer.core.correlator import derive_out_kappa, upsert_bridge_transaction
from bridge_indexer.core.harvesters.forward_indexer import index_forward
from bridge_indexer.core.topics import classify

__all__ = [
    "classify",
    "derive_out_kappa",
    "index_forward",
    "upsert_bridge_transaction",
]
