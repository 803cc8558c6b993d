"""
Contract interfaces used by the indexer: bridge events and the two bridge
functions whose calldata carries the swap pool, the swap-pool `getToken`
getter, and the ERC-20 events used to recover transferred values.
"""

from typing import Any, Dict, List

# ---------------- Bridge events ----------------
TOKEN_DEPOSIT_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True,  "internalType": "address", "name": "to", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "chainId", "type": "uint256"},
        {"indexed": False, "internalType": "contract IERC20", "name": "token", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
    ],
    "name": "TokenDeposit", "type": "event",
}
TOKEN_REDEEM_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True,  "internalType": "address", "name": "to", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "chainId", "type": "uint256"},
        {"indexed": False, "internalType": "contract IERC20", "name": "token", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
    ],
    "name": "TokenRedeem", "type": "event",
}
TOKEN_DEPOSIT_AND_SWAP_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True,  "internalType": "address", "name": "to", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "chainId", "type": "uint256"},
        {"indexed": False, "internalType": "contract IERC20", "name": "token", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        {"indexed": False, "internalType": "uint8",   "name": "tokenIndexFrom", "type": "uint8"},
        {"indexed": False, "internalType": "uint8",   "name": "tokenIndexTo", "type": "uint8"},
        {"indexed": False, "internalType": "uint256", "name": "minDy", "type": "uint256"},
        {"indexed": False, "internalType": "uint256", "name": "deadline", "type": "uint256"},
    ],
    "name": "TokenDepositAndSwap", "type": "event",
}
TOKEN_REDEEM_AND_SWAP_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True,  "internalType": "address", "name": "to", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "chainId", "type": "uint256"},
        {"indexed": False, "internalType": "contract IERC20", "name": "token", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        {"indexed": False, "internalType": "uint8",   "name": "tokenIndexFrom", "type": "uint8"},
        {"indexed": False, "internalType": "uint8",   "name": "tokenIndexTo", "type": "uint8"},
        {"indexed": False, "internalType": "uint256", "name": "minDy", "type": "uint256"},
        {"indexed": False, "internalType": "uint256", "name": "deadline", "type": "uint256"},
    ],
    "name": "TokenRedeemAndSwap", "type": "event",
}
TOKEN_REDEEM_AND_REMOVE_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True,  "internalType": "address", "name": "to", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "chainId", "type": "uint256"},
        {"indexed": False, "internalType": "contract IERC20", "name": "token", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        {"indexed": False, "internalType": "uint8",   "name": "swapTokenIndex", "type": "uint8"},
        {"indexed": False, "internalType": "uint256", "name": "swapMinAmount", "type": "uint256"},
        {"indexed": False, "internalType": "uint256", "name": "swapDeadline", "type": "uint256"},
    ],
    "name": "TokenRedeemAndRemove", "type": "event",
}
TOKEN_WITHDRAW_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True,  "internalType": "address", "name": "to", "type": "address"},
        {"indexed": False, "internalType": "contract IERC20", "name": "token", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        {"indexed": False, "internalType": "uint256", "name": "fee", "type": "uint256"},
        {"indexed": True,  "internalType": "bytes32", "name": "kappa", "type": "bytes32"},
    ],
    "name": "TokenWithdraw", "type": "event",
}
TOKEN_MINT_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True,  "internalType": "address", "name": "to", "type": "address"},
        {"indexed": False, "internalType": "contract IERC20Mintable", "name": "token", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        {"indexed": False, "internalType": "uint256", "name": "fee", "type": "uint256"},
        {"indexed": True,  "internalType": "bytes32", "name": "kappa", "type": "bytes32"},
    ],
    "name": "TokenMint", "type": "event",
}
TOKEN_MINT_AND_SWAP_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True,  "internalType": "address", "name": "to", "type": "address"},
        {"indexed": False, "internalType": "contract IERC20Mintable", "name": "token", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        {"indexed": False, "internalType": "uint256", "name": "fee", "type": "uint256"},
        {"indexed": False, "internalType": "uint8",   "name": "tokenIndexFrom", "type": "uint8"},
        {"indexed": False, "internalType": "uint8",   "name": "tokenIndexTo", "type": "uint8"},
        {"indexed": False, "internalType": "uint256", "name": "minDy", "type": "uint256"},
        {"indexed": False, "internalType": "uint256", "name": "deadline", "type": "uint256"},
        {"indexed": False, "internalType": "bool",    "name": "swapSuccess", "type": "bool"},
        {"indexed": True,  "internalType": "bytes32", "name": "kappa", "type": "bytes32"},
    ],
    "name": "TokenMintAndSwap", "type": "event",
}
TOKEN_WITHDRAW_AND_REMOVE_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True,  "internalType": "address", "name": "to", "type": "address"},
        {"indexed": False, "internalType": "contract IERC20", "name": "token", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        {"indexed": False, "internalType": "uint256", "name": "fee", "type": "uint256"},
        {"indexed": False, "internalType": "uint8",   "name": "swapTokenIndex", "type": "uint8"},
        {"indexed": False, "internalType": "uint256", "name": "swapMinAmount", "type": "uint256"},
        {"indexed": False, "internalType": "uint256", "name": "swapDeadline", "type": "uint256"},
        {"indexed": False, "internalType": "bool",    "name": "swapSuccess", "type": "bool"},
        {"indexed": True,  "internalType": "bytes32", "name": "kappa", "type": "bytes32"},
    ],
    "name": "TokenWithdrawAndRemove", "type": "event",
}

BRIDGE_EVENT_ABIS: List[Dict[str, Any]] = [
    TOKEN_DEPOSIT_EVENT_ABI,
    TOKEN_REDEEM_EVENT_ABI,
    TOKEN_DEPOSIT_AND_SWAP_EVENT_ABI,
    TOKEN_REDEEM_AND_SWAP_EVENT_ABI,
    TOKEN_REDEEM_AND_REMOVE_EVENT_ABI,
    TOKEN_WITHDRAW_EVENT_ABI,
    TOKEN_MINT_EVENT_ABI,
    TOKEN_MINT_AND_SWAP_EVENT_ABI,
    TOKEN_WITHDRAW_AND_REMOVE_EVENT_ABI,
]

EVENT_ABI_BY_NAME: Dict[str, Dict[str, Any]] = {abi["name"]: abi for abi in BRIDGE_EVENT_ABIS}

# ---------------- Bridge functions (calldata decoding) ----------------
MINT_AND_SWAP_FUNCTION_ABI = {
    "inputs": [
        {"internalType": "address", "name": "to", "type": "address"},
        {"internalType": "contract IERC20Mintable", "name": "token", "type": "address"},
        {"internalType": "uint256", "name": "amount", "type": "uint256"},
        {"internalType": "uint256", "name": "fee", "type": "uint256"},
        {"internalType": "contract ISwap", "name": "pool", "type": "address"},
        {"internalType": "uint8",   "name": "tokenIndexFrom", "type": "uint8"},
        {"internalType": "uint8",   "name": "tokenIndexTo", "type": "uint8"},
        {"internalType": "uint256", "name": "minDy", "type": "uint256"},
        {"internalType": "uint256", "name": "deadline", "type": "uint256"},
        {"internalType": "bytes32", "name": "kappa", "type": "bytes32"},
    ],
    "name": "mintAndSwap",
    "outputs": [],
    "stateMutability": "nonpayable",
    "type": "function",
}
WITHDRAW_AND_REMOVE_FUNCTION_ABI = {
    "inputs": [
        {"internalType": "address", "name": "to", "type": "address"},
        {"internalType": "contract IERC20", "name": "token", "type": "address"},
        {"internalType": "uint256", "name": "amount", "type": "uint256"},
        {"internalType": "uint256", "name": "fee", "type": "uint256"},
        {"internalType": "contract ISwap", "name": "pool", "type": "address"},
        {"internalType": "uint8",   "name": "swapTokenIndex", "type": "uint8"},
        {"internalType": "uint256", "name": "swapMinAmount", "type": "uint256"},
        {"internalType": "uint256", "name": "swapDeadline", "type": "uint256"},
        {"internalType": "bytes32", "name": "kappa", "type": "bytes32"},
    ],
    "name": "withdrawAndRemove",
    "outputs": [],
    "stateMutability": "nonpayable",
    "type": "function",
}

BRIDGE_ABI: List[Dict[str, Any]] = [
    *BRIDGE_EVENT_ABIS,
    MINT_AND_SWAP_FUNCTION_ABI,
    WITHDRAW_AND_REMOVE_FUNCTION_ABI,
]

# Function called by the relayer for each swap-involved IN event.
FUNCTION_FOR_EVENT: Dict[str, str] = {
    "TokenWithdrawAndRemove": "withdrawAndRemove",
    "TokenMintAndSwap": "mintAndSwap",
}

# ---------------- Swap pool ----------------
POOL_TOKEN_ABI = [
    {
        "inputs": [{"internalType": "uint8", "name": "index", "type": "uint8"}],
        "name": "getToken",
        "outputs": [{"internalType": "contract IERC20", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    }
]

# ---------------- ERC-20 ----------------
ERC20_TRANSFER_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True,  "internalType": "address", "name": "from", "type": "address"},
        {"indexed": True,  "internalType": "address", "name": "to", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "value", "type": "uint256"},
    ],
    "name": "Transfer", "type": "event",
}
ERC20_APPROVAL_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True,  "internalType": "address", "name": "owner", "type": "address"},
        {"indexed": True,  "internalType": "address", "name": "spender", "type": "address"},
        {"indexed": False, "internalType": "uint256", "name": "value", "type": "uint256"},
    ],
    "name": "Approval", "type": "event",
}

ERC20_EVENT_ABIS: List[Dict[str, Any]] = [ERC20_TRANSFER_EVENT_ABI, ERC20_APPROVAL_EVENT_ABI]


def event_signature(event_abi: Dict[str, Any]) -> str:
    """Canonical `Name(type,type,...)` signature of an event ABI entry."""
    types = ",".join(arg["type"] for arg in event_abi["inputs"])
    return f"{event_abi['name']}({types})"
