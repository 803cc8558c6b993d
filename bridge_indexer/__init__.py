"""
Bridge Indexer

Indexes cross-chain bridge events and correlates both legs of every transfer
into one record keyed by kappa.
"""

__version__ = "1.0.0"

from bridge_indexer.core import (
    classify,
    derive_out_kappa,
    index_forward,
    upsert_bridge_transaction,
)

__all__ = [
    "__version__",
    "classify",
    "derive_out_kappa",
    "index_forward",
    "upsert_bridge_transaction",
]
