"""
extractor.py: turn one classified bridge log into a partial bridge record

Overview
--------
A bridge log only says *that* a transfer happened; what was actually moved
has to be recovered from the surrounding transaction:

OUT (source chain)
  - The sent token is the first receipt log emitted by a token in the chain's
    registry; its raw data is the sent value. On Ethereum mainnet non-WETH
    tokens are decoded through their ERC-20 log instead, keeping the raw value
    when that fails.
  - kappa is derived from the transaction hash.

IN (destination chain)
  - Swap-involved events (`TokenMintAndSwap`, `TokenWithdrawAndRemove`): the
    pool is read from the relayer's calldata and the received token is the
    pool coin at the output index when the swap succeeded, otherwise nUSD on
    Ethereum or coin 0 elsewhere.
  - `TokenWithdraw`: decoded token, value = amount - fee.
  - `TokenMint`: decoded token, value recovered from the receipt logs and
    corrected when it disagrees with the minted amount.
  - Non ERC-20 assets are remapped to their wrapper before value lookup.
  - Legs that did not end in a successful swap pay the bridge fee once.

Anything that cannot produce a record raises an `EventSkipped` subclass.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from eth_abi.exceptions import DecodingError
from web3 import Web3
from web3.exceptions import MismatchedABI

from bridge_indexer.core.abi import ERC20_EVENT_ABIS, EVENT_ABI_BY_NAME, FUNCTION_FOR_EVENT, event_signature
from bridge_indexer.core.chain import ChainReader
from bridge_indexer.core.config import ETH_CHAIN_ID, ETH_NEXUS_ASSET, WRAPPED_NATIVE_SYMBOL, ChainConfig, checksum
from bridge_indexer.core.correlator import PartialRecord, derive_out_kappa, normalize_hash
from bridge_indexer.core.errors import MissingReceivedValueError, UncoveredEventError, UnresolvedTokenError
from bridge_indexer.core.pools import PoolResolver
from bridge_indexer.core.topics import Direction, EventInfo, normalize_topic, topic_for_signature

logger = logging.getLogger(__name__)

DECODE_ERRORS = (MismatchedABI, DecodingError, ValueError, TypeError, IndexError, KeyError)

ERC20_ABI_BY_TOPIC: Dict[str, Dict[str, Any]] = {
    topic_for_signature(event_signature(abi)): abi for abi in ERC20_EVENT_ABIS
}

SWAP_EVENTS = ("TokenMintAndSwap", "TokenWithdrawAndRemove")
DIRECT_EVENTS = ("TokenWithdraw", "TokenMint")


# ---------------- Log helpers ----------------
def log_data(log: Any) -> bytes:
    data = log["data"]
    if isinstance(data, str):
        return Web3.to_bytes(hexstr=data)
    return bytes(data)


def raw_log_value(log: Any) -> int:
    data = log_data(log)
    return int.from_bytes(data, "big") if data else 0


def log_address(log: Any) -> str:
    return checksum(log["address"])


def decode_erc20_value(reader: ChainReader, log: Any) -> int:
    topics = log["topics"]
    if not topics:
        raise ValueError("anonymous log has no topic0")
    abi = ERC20_ABI_BY_TOPIC.get(normalize_topic(topics[0]))
    if abi is None:
        raise ValueError(f"topic {normalize_topic(topics[0])} is not an ERC-20 value event")
    return int(reader.decode_event(abi, log)["value"])


# ---------------- OUT ----------------
def parse_transfer_log(reader: ChainReader, chain: ChainConfig, logs: List[Any]) -> Dict[str, Any]:
    """Sent token and value from the first receipt log emitted by a registry token."""
    for log in logs:
        address = log_address(log)
        symbol = chain.tokens.get(address)
        if symbol is None:
            continue

        sent_value = raw_log_value(log)
        if chain.id == ETH_CHAIN_ID and symbol != WRAPPED_NATIVE_SYMBOL:
            try:
                sent_value = decode_erc20_value(reader, log)
            except DECODE_ERRORS as exc:
                logger.warning(
                    "Could not decode %s log of tx %s, keeping raw value %s: %s",
                    symbol, normalize_hash(log["transactionHash"]), sent_value, exc,
                )
        return {
            "sentTokenAddress": address,
            "sentTokenSymbol": symbol,
            "sentValue": sent_value,
        }
    return {}


def extract_out(reader: ChainReader, info: EventInfo, log: Any, txn: Any, receipt: Any, timestamp: int) -> PartialRecord:
    chain = reader.chain
    args = reader.decode_event(EVENT_ABI_BY_NAME[info.event_name], log)
    txn_hash = normalize_hash(log["transactionHash"])
    fields: Dict[str, Any] = {
        "fromTxnHash": txn_hash,
        "fromAddress": checksum(txn["from"]),
        "toAddress": checksum(args["to"]),
        "fromChainId": chain.id,
        "toChainId": int(args["chainId"]),
        "sentTime": int(timestamp),
        "pending": True,
    }
    fields.update(parse_transfer_log(reader, chain, receipt["logs"]))
    return PartialRecord(Direction.OUT, derive_out_kappa(txn_hash), fields)


# ---------------- IN ----------------
def swap_destination_token(chain: ChainConfig, coins: List[str], swap_success: bool, index_to: int) -> str:
    if swap_success:
        if index_to >= len(coins):
            raise UnresolvedTokenError(f"output index {index_to} outside pool of {len(coins)} coins")
        return coins[index_to]
    if chain.id == ETH_CHAIN_ID:
        return ETH_NEXUS_ASSET
    if not coins:
        raise UnresolvedTokenError("swap pool returned no coins")
    return coins[0]


def scan_token_value(reader: ChainReader, logs: List[Any], token: str) -> Optional[int]:
    """Value of the first decodable ERC-20 log emitted by `token`."""
    for log in logs:
        if log_address(log) != token:
            continue
        try:
            return decode_erc20_value(reader, log)
        except DECODE_ERRORS as exc:
            logger.warning("Skipping undecodable log %s of token %s: %s", log.get("logIndex"), token, exc)
    return None


def mint_correction(logs: List[Any], amount: int) -> Tuple[int, str]:
    """
    Walk the receipt logs in order taking each one's raw data and address as
    the candidate value and token; stop at the first candidate not above the
    minted amount. The last candidate stands if none qualifies.
    """
    value, token = 0, None
    for log in logs:
        value, token = raw_log_value(log), log_address(log)
        logger.debug("Mint candidate %s from %s (amount %s)", value, token, amount)
        if value <= amount:
            break
    return value, token


def extract_in(reader: ChainReader, pools: PoolResolver, info: EventInfo, log: Any, txn: Any,
               receipt: Any, timestamp: int) -> PartialRecord:
    chain = reader.chain
    name = info.event_name
    if name not in SWAP_EVENTS and name not in DIRECT_EVENTS:
        raise UncoveredEventError(name)

    args = reader.decode_event(EVENT_ABI_BY_NAME[name], log)
    kappa = normalize_hash(args["kappa"])
    amount = int(args["amount"])
    fee = int(args["fee"])
    logs = receipt["logs"]

    received_value: Optional[int] = None
    swap_success: Optional[bool] = None
    net_of_fee = False

    if name in SWAP_EVENTS:
        call = reader.decode_bridge_call(txn["input"], FUNCTION_FOR_EVENT[name])
        coins = pools.resolve(call["pool"])
        swap_success = bool(args["swapSuccess"])
        index_to = int(args["tokenIndexTo"] if name == "TokenMintAndSwap" else args["swapTokenIndex"])
        token = swap_destination_token(chain, coins, swap_success, index_to)
    else:
        token = args["token"]
        if name == "TokenWithdraw":
            received_value = amount - fee
            net_of_fee = True

    token = chain.remap_token(token)

    if received_value is None:
        logger.debug("Searching logs of %s for value received in %s", kappa, token)
        received_value = scan_token_value(reader, logs, token)
        if received_value is None:
            raise MissingReceivedValueError(
                f"no log from {token} carries the received value for kappa {kappa}"
            )

    if name == "TokenMint" and received_value != amount:
        logger.info("TokenMint %s: log value %s differs from amount %s, rescanning", kappa, received_value, amount)
        received_value, token = mint_correction(logs, amount)
        token = chain.remap_token(token)

    if not swap_success and not net_of_fee:
        received_value -= fee

    if received_value < 0:
        logger.warning("Received value for kappa %s is below zero after fees (%s); clamping", kappa, received_value)
        received_value = 0

    fields: Dict[str, Any] = {
        "toTxnHash": normalize_hash(log["transactionHash"]),
        "toAddress": checksum(args["to"]),
        "toChainId": chain.id,
        "receivedTokenAddress": token,
        "receivedTokenSymbol": chain.token_symbol(token),
        "receivedValue": received_value,
        "swapSuccess": swap_success,
        "receivedTime": int(timestamp),
        "pending": False,
    }
    return PartialRecord(Direction.IN, kappa, fields)


def extract_partial_record(reader: ChainReader, pools: PoolResolver, info: EventInfo, log: Any) -> PartialRecord:
    """Fetch the event's transaction context and build the leg it describes."""
    txn_hash = normalize_hash(log["transactionHash"])
    txn = reader.get_transaction(txn_hash)
    receipt = reader.get_receipt(txn_hash)
    timestamp = reader.block_timestamp(int(log["blockNumber"]))

    if info.direction == Direction.OUT:
        return extract_out(reader, info, log, txn, receipt, timestamp)
    return extract_in(reader, pools, info, log, txn, receipt, timestamp)
