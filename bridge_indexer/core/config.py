"""
Configuration loading for the bridge indexer.

Runtime parameters come from a YAML file (path in `BRIDGE_INDEXER_CONFIG_PATH`)
merged over `DEFAULT_CONFIG`. Each chain entry names its RPC endpoints, the
bridge contract address and the token registry (address -> symbol) used to
recognise transfer logs.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml
from web3 import Web3

from bridge_indexer.core.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_PATH = os.environ.get(
    "BRIDGE_INDEXER_CONFIG_PATH", "parameters_yml/bridge_indexer_config.yml"
)

ETH_CHAIN_ID = 1
AVALANCHE_CHAIN_ID = 43114

WRAPPED_NATIVE_SYMBOL = "WETH"

# nUSD on Ethereum; nexus assets are not part of the mainnet swap pools.
ETH_NEXUS_ASSET = "0x1B84765dE8B7566e4cEAF4D0fD3c5aF52D3DdE4F"

# Destination tokens that are not ERC-20 compatible, mapped to the wrapper
# whose Transfer logs carry the received value.
NON_STANDARD_ASSET_REMAP: Dict[int, Dict[str, str]] = {
    AVALANCHE_CHAIN_ID: {
        "0x20A9DC684B4d0407EF8C9A302BEAaA18ee15F656": "0x62edc0692BD897D2295872a9FFCac5425011c661",
    },
}

DEFAULT_CONFIG: Dict[str, Any] = {
    "chains": [
        {
            "name": "ethereum",
            "id": ETH_CHAIN_ID,
            "json_rpc_urls": ["https://eth.llamarpc.com"],
            "bridge": "0x2796317b0fF8538F253012862c06787Adfb8cEb6",
            "tokens": {
                "0x1B84765dE8B7566e4cEAF4D0fD3c5aF52D3DdE4F": "nUSD",
                "0x0f2D719407FdBeFF09D87557AbB7232601FD9F29": "SYN",
                "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48": "USDC",
                "0xdAC17F958D2ee523a2206206994597C13D831ec7": "USDT",
                "0x6B175474E89094C44Da98b954EedeAC495271d0F": "DAI",
                "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2": "WETH",
            },
        },
    ],
    "window_size": 500,
    "checkpoint_store": "json",
    "redis_url": "redis://localhost:6379/0",
    "flag_ttl_seconds": 3600,
    "checkpoint_path": "bridge_indexer_checkpoints.json",
    "db_path": "data/bridge_transactions.db",
    "log_level": "INFO",
    "poll_interval_seconds": 15,
    "request_timeout": 60.0,
}


@dataclass
class ChainConfig:
    name: str
    id: int
    json_rpc_urls: List[str]
    bridge: str
    tokens: Dict[str, str] = field(default_factory=dict)

    def token_symbol(self, address: Optional[str]) -> Optional[str]:
        if not address:
            return None
        return self.tokens.get(checksum(address))

    def remap_token(self, address: str) -> str:
        target = checksum(address)
        for source, wrapper in NON_STANDARD_ASSET_REMAP.get(self.id, {}).items():
            if checksum(source) == target:
                return checksum(wrapper)
        return target


def checksum(address: str) -> str:
    return Web3.to_checksum_address(address)


def _parse_chain(entry: Dict[str, Any]) -> ChainConfig:
    try:
        name = str(entry["name"]).strip()
        chain_id = int(entry["id"])
        bridge = entry["bridge"]
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"Chain entry {entry!r} needs 'name', 'id' and 'bridge': {exc}") from exc
    if not name:
        raise ConfigError("Chain entry has an empty 'name'.")

    urls = [str(u).strip() for u in entry.get("json_rpc_urls") or [] if str(u).strip()]
    if not urls:
        raise ConfigError(f"Chain {name!r}: 'json_rpc_urls' must be a non-empty list.")

    try:
        tokens = {checksum(addr): str(sym) for addr, sym in (entry.get("tokens") or {}).items()}
        bridge = checksum(bridge)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Chain {name!r}: invalid address: {exc}") from exc

    return ChainConfig(name=name, id=chain_id, json_rpc_urls=urls, bridge=bridge, tokens=tokens)


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    path = path or CONFIG_PATH
    if not os.path.exists(path):
        logger.warning("Configuration file %r not found. Using defaults.", path)
        cfg = DEFAULT_CONFIG.copy()
    else:
        with open(path, "r") as fh:
            loaded = yaml.safe_load(fh) or {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Configuration file {path!r} must hold a mapping.")
        cfg = DEFAULT_CONFIG.copy()
        cfg.update(loaded)

    chains = cfg.get("chains")
    if not isinstance(chains, list) or not chains:
        raise ConfigError("Config field 'chains' must be a non-empty list.")
    cfg["chains"] = [_parse_chain(entry) for entry in chains]
    names = [chain.name for chain in cfg["chains"]]
    if len(set(names)) != len(names):
        raise ConfigError(f"Chain names must be unique, got {names}.")

    cfg["window_size"] = int(cfg["window_size"])
    if cfg["window_size"] <= 0:
        raise ConfigError("Config field 'window_size' must be positive.")
    cfg["checkpoint_store"] = str(cfg["checkpoint_store"]).lower()
    if cfg["checkpoint_store"] not in ("redis", "json"):
        raise ConfigError("Config field 'checkpoint_store' must be 'redis' or 'json'.")
    cfg["poll_interval_seconds"] = float(cfg["poll_interval_seconds"])
    cfg["request_timeout"] = float(cfg["request_timeout"])
    cfg["flag_ttl_seconds"] = int(cfg["flag_ttl_seconds"])
    if cfg["flag_ttl_seconds"] <= 0:
        raise ConfigError("Config field 'flag_ttl_seconds' must be positive.")
    cfg["log_level"] = str(cfg["log_level"]).upper()
    return cfg
