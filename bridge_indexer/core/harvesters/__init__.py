"""
Indexing loops for bridge events.
"""

from bridge_indexer.core.harvesters.forward_indexer import index_forward, main as forward_main

__all__ = [
    "index_forward",
    "forward_main",
]
