"""
Read-only access to one chain: head block, transactions, receipts, block
timestamps, bridge log queries and contract calls, plus ABI decoding.

A reader is built per indexing pass; its caches live as long as the pass.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from eth_defi.provider.multi_provider import create_multi_provider_web3
from web3 import Web3
from web3._utils.events import get_event_data
from web3.exceptions import TransactionNotFound

from bridge_indexer.core.abi import BRIDGE_ABI, POOL_TOKEN_ABI
from bridge_indexer.core.config import ChainConfig

logger = logging.getLogger(__name__)

RETRYABLE = (
    "timeout", "503", "502", "500", "429", "rate limit", "too many",
    "limit exceeded", "gateway", "413", "entity too large",
    "payload too large", "request entity too large", "content too big",
    "range is too large", "max is 1k blocks",
    "query returned more than 10000 results", "exceeds max results",
    "-32005", "-32603", "-32602",
)

RECEIPT_ATTEMPTS = 5


def is_retryable(exc: Exception) -> bool:
    msg = str(exc).lower()
    return any(s in msg for s in RETRYABLE)


class ChainReader:
    def __init__(self, w3: Web3, chain: ChainConfig):
        self.w3 = w3
        self.chain = chain
        self.bridge = w3.eth.contract(address=chain.bridge, abi=BRIDGE_ABI)
        self._tx_cache: Dict[str, Any] = {}
        self._rcpt_cache: Dict[str, Any] = {}
        self._ts_cache: Dict[int, int] = {}

    @classmethod
    def from_config(cls, chain: ChainConfig, timeout: float = 60.0) -> "ChainReader":
        w3 = create_multi_provider_web3(
            " ".join(chain.json_rpc_urls), request_kwargs={"timeout": timeout}
        )
        return cls(w3, chain)

    # ---------------- Chain state ----------------
    def block_number(self) -> int:
        return int(self.w3.eth.block_number)

    def block_timestamp(self, block_number: int) -> int:
        if block_number not in self._ts_cache:
            self._ts_cache[block_number] = int(self.w3.eth.get_block(block_number)["timestamp"])
        return self._ts_cache[block_number]

    def get_transaction(self, tx_hash: str) -> Any:
        if tx_hash not in self._tx_cache:
            self._tx_cache[tx_hash] = self.w3.eth.get_transaction(tx_hash)
        return self._tx_cache[tx_hash]

    def get_receipt(self, tx_hash: str) -> Any:
        """Fetch a receipt, retrying briefly while a lagging node has not seen it."""
        if tx_hash in self._rcpt_cache:
            return self._rcpt_cache[tx_hash]
        for attempt in range(RECEIPT_ATTEMPTS):
            try:
                receipt = self.w3.eth.get_transaction_receipt(tx_hash)
                break
            except TransactionNotFound:
                if attempt == RECEIPT_ATTEMPTS - 1:
                    raise
                logger.debug("Receipt for %s not found yet, retrying", tx_hash)
                time.sleep(1.0 + attempt * 0.5)
        self._rcpt_cache[tx_hash] = receipt
        return receipt

    # ---------------- Logs ----------------
    def query_logs(self, topics: Sequence[str], start_block: int, end_block: int) -> List[Any]:
        filt = {
            "fromBlock": start_block,
            "toBlock": end_block,
            "address": self.chain.bridge,
            "topics": [list(topics)],
        }
        return list(self.w3.eth.get_logs(filt))

    def get_bridge_logs(self, topics: Sequence[str], start_block: int, end_block: int) -> List[Any]:
        """
        All bridge logs matching any of `topics` in [start_block, end_block],
        ordered by (blockNumber, logIndex). Ranges the node refuses are split
        in halves until they go through.
        """
        logs: List[Any] = []

        def fetch_range(a: int, b: int) -> None:
            try:
                logs.extend(self.query_logs(topics, a, b))
            except Exception as exc:
                if b > a and is_retryable(exc):
                    mid = (a + b) // 2
                    logger.debug("Splitting log query %s-%s: %s", a, b, str(exc)[:100])
                    fetch_range(a, mid)
                    fetch_range(mid + 1, b)
                    return
                raise

        fetch_range(start_block, end_block)
        logs.sort(key=lambda lg: (int(lg["blockNumber"]), int(lg["logIndex"])))
        return logs

    # ---------------- Contract calls ----------------
    def pool_token(self, pool_address: str, index: int) -> str:
        pool = self.w3.eth.contract(address=Web3.to_checksum_address(pool_address), abi=POOL_TOKEN_ABI)
        return Web3.to_checksum_address(pool.functions.getToken(index).call())

    # ---------------- Decoding ----------------
    def decode_event(self, event_abi: Dict[str, Any], log: Any) -> Dict[str, Any]:
        return dict(get_event_data(self.w3.codec, event_abi, log)["args"])

    def decode_bridge_call(self, calldata: Any, expected_function: Optional[str] = None) -> Dict[str, Any]:
        func, params = self.bridge.decode_function_input(calldata)
        if expected_function and func.fn_name != expected_function:
            raise ValueError(f"calldata is for {func.fn_name}, expected {expected_function}")
        return dict(params)
