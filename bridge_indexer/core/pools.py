"""
Swap-pool coin discovery.

Pools expose their coins only through an indexed getter, so the list is
recovered by probing index 0, 1, 2, ... until the pool reverts.
"""

import logging
from typing import Dict, List

from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from bridge_indexer.core.chain import ChainReader
from bridge_indexer.core.errors import PoolResolutionError

logger = logging.getLogger(__name__)

MAX_POOL_COINS = 1 << 8

# Probe errors that mean "no coin at this index".
END_OF_LIST_ERRORS = (ContractLogicError, BadFunctionCallOutput)


def resolve_pool_coins(reader: ChainReader, pool_address: str) -> List[str]:
    coins: List[str] = []
    for index in range(MAX_POOL_COINS):
        try:
            coins.append(reader.pool_token(pool_address, index))
        except END_OF_LIST_ERRORS:
            return coins
        except Exception as exc:
            # some nodes surface reverts as plain RPC errors
            if "revert" in str(exc).lower():
                return coins
            raise PoolResolutionError(
                f"probing coin {index} of pool {pool_address} failed: {exc}"
            ) from exc
    logger.warning("Pool %s still answered after %d coins; stopping", pool_address, MAX_POOL_COINS)
    return coins


class PoolResolver:
    """Caches coin lists per pool for the lifetime of one pass."""

    def __init__(self, reader: ChainReader):
        self.reader = reader
        self._cache: Dict[str, List[str]] = {}

    def resolve(self, pool_address: str) -> List[str]:
        key = Web3.to_checksum_address(pool_address)
        if key not in self._cache:
            self._cache[key] = resolve_pool_coins(self.reader, key)
            logger.debug("Pool %s coins: %s", key, self._cache[key])
        return self._cache[key]
