"""
Static topic registry for bridge events and the event classifier.

The registry maps topic0 (keccak256 of the canonical event signature) to the
event name and its direction: OUT events are emitted on the source chain when
funds leave it, IN events on the destination chain when funds arrive.
"""

from enum import Enum
from typing import Dict, List, NamedTuple, Union

from web3 import Web3

from bridge_indexer.core.abi import BRIDGE_EVENT_ABIS, event_signature
from bridge_indexer.core.errors import UnknownTopicError


class Direction(str, Enum):
    IN = "IN"
    OUT = "OUT"


class EventInfo(NamedTuple):
    event_name: str
    direction: Direction


_DIRECTIONS: Dict[str, Direction] = {
    "TokenDeposit": Direction.OUT,
    "TokenRedeem": Direction.OUT,
    "TokenDepositAndSwap": Direction.OUT,
    "TokenRedeemAndSwap": Direction.OUT,
    "TokenRedeemAndRemove": Direction.OUT,
    "TokenWithdraw": Direction.IN,
    "TokenMint": Direction.IN,
    "TokenMintAndSwap": Direction.IN,
    "TokenWithdrawAndRemove": Direction.IN,
}


def topic_for_signature(signature: str) -> str:
    return Web3.to_hex(Web3.keccak(text=signature))


TOPICS: Dict[str, EventInfo] = {
    topic_for_signature(event_signature(abi)): EventInfo(abi["name"], _DIRECTIONS[abi["name"]])
    for abi in BRIDGE_EVENT_ABIS
}

TOPIC_BY_EVENT: Dict[str, str] = {info.event_name: topic for topic, info in TOPICS.items()}


def normalize_topic(topic_hash: Union[str, bytes]) -> str:
    if isinstance(topic_hash, (bytes, bytearray)):
        return Web3.to_hex(topic_hash)
    topic = str(topic_hash).lower()
    return topic if topic.startswith("0x") else "0x" + topic


def classify(topic_hash: Union[str, bytes]) -> EventInfo:
    """Return the event name and direction for a log's first topic."""
    topic = normalize_topic(topic_hash)
    try:
        return TOPICS[topic]
    except KeyError:
        raise UnknownTopicError(topic) from None


def all_topics() -> List[str]:
    return list(TOPICS)
