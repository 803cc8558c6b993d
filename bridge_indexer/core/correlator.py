"""
Correlation of the two legs of a bridge transfer.

The OUT leg derives kappa from its own transaction hash; the IN leg carries
the same kappa as an event field. Both legs are upserted into one document
keyed by kappa.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from web3 import Web3

from bridge_indexer.core.topics import Direction

logger = logging.getLogger(__name__)


@dataclass
class PartialRecord:
    direction: Direction
    kappa: str
    fields: Dict[str, Any] = field(default_factory=dict)


def derive_out_kappa(txn_hash: str) -> str:
    """keccak256 over the UTF-8 bytes of the 0x-prefixed, lowercase tx hash string."""
    return Web3.to_hex(Web3.keccak(text=normalize_hash(txn_hash)))


def normalize_hash(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    text = str(value).lower()
    return text if text.startswith("0x") else "0x" + text


def both_legs_present(record: Dict[str, Any]) -> bool:
    return record.get("fromTxnHash") is not None and record.get("toTxnHash") is not None


def merge_fields(stored: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Union of `stored` and `fields`: values already present in `stored` are
    never replaced, `None` values in `fields` are ignored. `pending` is not
    taken from `fields`; it drops to False once both legs are present.
    """
    merged = dict(stored)
    for key, value in fields.items():
        if key == "pending" or value is None:
            continue
        if merged.get(key) is None:
            merged[key] = value
    if both_legs_present(merged):
        merged["pending"] = False
    return merged


def upsert_bridge_transaction(store, partial: PartialRecord) -> Dict[str, Any]:
    """
    Insert the leg as a new record or merge it into the existing one.
    Idempotent for identical kappa and fields.
    """
    kappa = partial.kappa
    existing = store.find_one(kappa)

    if existing is None:
        logger.info("Transaction with kappa %s not found. Inserting...", kappa)
        record = {k: v for k, v in partial.fields.items() if v is not None}
        record["kappa"] = kappa
        record["pending"] = partial.direction == Direction.OUT
        store.insert(record)
        return record

    merged = merge_fields(existing, partial.fields)
    if merged == existing:
        logger.debug("Transaction with kappa %s already up to date", kappa)
        return existing
    logger.info("Transaction with kappa %s found. Updating...", kappa)
    changes = {k: v for k, v in merged.items() if existing.get(k) != v}
    return store.find_one_and_update(kappa, changes)
