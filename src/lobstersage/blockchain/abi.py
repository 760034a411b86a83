"""
lobstersage/blockchain/abi.py

ABI for the Reputation.sol contract (only the entries this package calls).
"""

from typing import Any, Dict, List


def _fn(
    name: str,
    inputs: List[Dict[str, Any]],
    outputs: List[Dict[str, Any]],
    mutability: str = "view",
) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": inputs,
        "outputs": outputs,
        "stateMutability": mutability,
    }


def _arg(name: str, type_: str) -> Dict[str, Any]:
    return {"name": name, "type": type_}


_USER = _arg("user", "address")
_UINT = _arg("", "uint256")

REPUTATION_STRUCT_FIELDS = [
    "totalScore",
    "accuracyPoints",
    "volumePoints",
    "consistencyPoints",
    "yieldPoints",
    "predictionsMade",
    "predictionsCorrect",
    "predictionsWrong",
    "totalVolume",
    "totalYieldProfit",
    "lastActiveDay",
    "consecutiveDays",
    "burns",
]

VOLUME_TIER_FUNCTIONS = [f"volumeTier{i}" for i in range(1, 6)]
YIELD_TIER_FUNCTIONS = [f"yieldTier{i}" for i in range(1, 6)]

REPUTATION_ABI: List[Dict[str, Any]] = [
    # Views
    _fn("getReputation", [_USER], [{
        "name": "",
        "type": "tuple",
        "components": [_arg(f, "uint256") for f in REPUTATION_STRUCT_FIELDS],
    }]),
    _fn("getScore", [_USER], [_UINT]),
    _fn("getRank", [_USER], [_UINT]),
    _fn("getLeaderboard", [_arg("count", "uint256")], [
        _arg("", "address[]"),
        _arg("", "uint256[]"),
    ]),
    _fn("getAccuracy", [_USER], [_UINT]),
    _fn("isTopPercent", [_USER, _arg("percent", "uint256")], [_arg("", "bool")]),
    _fn("totalUsers", [], [_UINT]),
    _fn("authorizedRecorders", [_arg("", "address")], [_arg("", "bool")]),
] + [
    _fn(name, [], [_UINT]) for name in VOLUME_TIER_FUNCTIONS + YIELD_TIER_FUNCTIONS
] + [
    # Writes
    _fn("recordPrediction", [
        _USER,
        _arg("success", "bool"),
        _arg("confidence", "uint256"),
        _arg("accuracyScore", "uint256"),
    ], [], "nonpayable"),
    _fn("recordVolume", [_USER, _arg("volume", "uint256")], [], "nonpayable"),
    _fn("recordActivity", [_USER], [], "nonpayable"),
    _fn("recordYield", [_USER, _arg("profit", "uint256")], [], "nonpayable"),
    _fn("recordBurn", [_USER], [], "nonpayable"),
]
