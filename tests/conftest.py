"""
Shared fixtures: an offline chain reader backed by in-memory blocks, and
helpers that ABI-encode bridge/ERC-20 logs and relayer calldata.
"""

from typing import Any, Dict, List, Optional

import pytest
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import ContractLogicError

from bridge_indexer.core.abi import (
    ERC20_TRANSFER_EVENT_ABI,
    EVENT_ABI_BY_NAME,
    MINT_AND_SWAP_FUNCTION_ABI,
    WITHDRAW_AND_REMOVE_FUNCTION_ABI,
    event_signature,
)
from bridge_indexer.core.chain import ChainReader
from bridge_indexer.core.config import ChainConfig, checksum
from bridge_indexer.core.stores import KeyValueStore, SqliteDocumentStore

W3 = Web3()

BRIDGE = checksum("0x" + "b" * 40)
USER = checksum("0x" + "1" * 40)
RELAYER = checksum("0x" + "2" * 40)
POOL = checksum("0x" + "3" * 40)
NUSD = checksum("0x" + "a1" * 20)
USDC = checksum("0x" + "a2" * 20)
USDT = checksum("0x" + "a3" * 20)
OTHER = checksum("0x" + "c4" * 20)


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def make_log(event_abi: Dict[str, Any], values: Dict[str, Any], txn_hash: str, address: str,
             block_number: int = 100, log_index: int = 0) -> Dict[str, Any]:
    indexed = [arg for arg in event_abi["inputs"] if arg["indexed"]]
    plain = [arg for arg in event_abi["inputs"] if not arg["indexed"]]
    topics = [HexBytes(Web3.keccak(text=event_signature(event_abi)))]
    topics += [HexBytes(W3.codec.encode([arg["type"]], [values[arg["name"]]])) for arg in indexed]
    data = W3.codec.encode([arg["type"] for arg in plain], [values[arg["name"]] for arg in plain])
    return {
        "address": address,
        "topics": topics,
        "data": HexBytes(data),
        "blockNumber": block_number,
        "blockHash": HexBytes(b"\x00" * 32),
        "transactionHash": HexBytes(txn_hash),
        "transactionIndex": 0,
        "logIndex": log_index,
    }


def bridge_log(event_name: str, values: Dict[str, Any], txn_hash: str, **kw) -> Dict[str, Any]:
    return make_log(EVENT_ABI_BY_NAME[event_name], values, txn_hash, BRIDGE, **kw)


def transfer_log(token: str, value: int, txn_hash: str, sender: str = BRIDGE, to: str = USER,
                 **kw) -> Dict[str, Any]:
    return make_log(ERC20_TRANSFER_EVENT_ABI, {"from": sender, "to": to, "value": value},
                    txn_hash, token, **kw)


def raw_log(address: str, value: int, txn_hash: str, **kw) -> Dict[str, Any]:
    """A log from `address` whose topic is not an ERC-20 event and whose data is `value`."""
    log = make_log(ERC20_TRANSFER_EVENT_ABI, {"from": BRIDGE, "to": USER, "value": value}, txn_hash, address, **kw)
    log["topics"] = [HexBytes(Web3.keccak(text="Sync(uint256)"))]
    return log


def encode_call(function_abi: Dict[str, Any], values: Dict[str, Any]) -> HexBytes:
    types = [arg["type"] for arg in function_abi["inputs"]]
    signature = f"{function_abi['name']}({','.join(types)})"
    selector = Web3.keccak(text=signature)[:4]
    args = [values[arg["name"]] for arg in function_abi["inputs"]]
    return HexBytes(selector + W3.codec.encode(types, args))


def kappa_bytes(kappa_hex: str) -> bytes:
    return bytes.fromhex(kappa_hex[2:])


def mint_and_swap_call(pool: str, kappa: bytes, token: str = NUSD, index_to: int = 1) -> HexBytes:
    return encode_call(MINT_AND_SWAP_FUNCTION_ABI, {
        "to": USER, "token": token, "amount": 1000, "fee": 10, "pool": pool,
        "tokenIndexFrom": 0, "tokenIndexTo": index_to, "minDy": 0, "deadline": 2 ** 32, "kappa": kappa,
    })


def withdraw_and_remove_call(pool: str, kappa: bytes, token: str = NUSD, index_to: int = 1) -> HexBytes:
    return encode_call(WITHDRAW_AND_REMOVE_FUNCTION_ABI, {
        "to": USER, "token": token, "amount": 1000, "fee": 10, "pool": pool,
        "swapTokenIndex": index_to, "swapMinAmount": 0, "swapDeadline": 2 ** 32, "kappa": kappa,
    })


class FakeChainReader(ChainReader):
    """ChainReader whose RPC surface is served from dictionaries."""

    def __init__(self, chain: ChainConfig, head: int = 1000):
        super().__init__(W3, chain)
        self.head = head
        self.logs: List[Dict[str, Any]] = []
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.receipts: Dict[str, Dict[str, Any]] = {}
        self.pools: Dict[str, List[str]] = {}
        self.log_queries: List[tuple] = []
        self.head_queries = 0

    def add_transaction(self, txn_hash: str, event: Optional[Dict[str, Any]], receipt_logs: List[Dict[str, Any]],
                        sender: str = USER, calldata: bytes = b"") -> None:
        self.transactions[txn_hash] = {"hash": HexBytes(txn_hash), "from": sender, "input": HexBytes(calldata)}
        self.receipts[txn_hash] = {"logs": receipt_logs}
        if event is not None:
            self.logs.append(event)

    def block_number(self) -> int:
        self.head_queries += 1
        return self.head

    def block_timestamp(self, block_number: int) -> int:
        return 1_600_000_000 + block_number

    def get_transaction(self, txn_hash: str):
        return self.transactions[txn_hash]

    def get_receipt(self, txn_hash: str):
        return self.receipts[txn_hash]

    def query_logs(self, topics, start_block: int, end_block: int):
        self.log_queries.append((start_block, end_block))
        return [lg for lg in self.logs if start_block <= lg["blockNumber"] <= end_block]

    def pool_token(self, pool_address: str, index: int) -> str:
        coins = self.pools[checksum(pool_address)]
        if index >= len(coins):
            raise ContractLogicError("execution reverted")
        return coins[index]


class MemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self.writes: List[tuple] = []

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.writes.append((key, str(value)))
        self.data[key] = str(value)


@pytest.fixture
def chain() -> ChainConfig:
    return ChainConfig(
        name="testnet", id=10, json_rpc_urls=["http://localhost:8545"], bridge=BRIDGE,
        tokens={NUSD: "nUSD", USDC: "USDC", USDT: "USDT"},
    )


@pytest.fixture
def eth_chain() -> ChainConfig:
    return ChainConfig(
        name="ethereum", id=1, json_rpc_urls=["http://localhost:8545"], bridge=BRIDGE,
        tokens={NUSD: "nUSD", USDC: "USDC", USDT: "USDT"},
    )


@pytest.fixture
def reader(chain) -> FakeChainReader:
    return FakeChainReader(chain)


@pytest.fixture
def kv_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def doc_store(tmp_path):
    store = SqliteDocumentStore(str(tmp_path / "bridge.db"))
    yield store
    store.close()
