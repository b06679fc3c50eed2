from __future__ import annotations

from typing import Any, Dict

from web3 import Web3

from errors import EstimationFailure, classify_exception
from observability import build_log_context, log_event

GAS_CTX = build_log_context(component="gas_estimator")


def inflate(raw: int) -> int:
    """raw + ceil(raw * 10%), in integer arithmetic."""
    if raw < 0:
        raise ValueError("gas estimate cannot be negative")
    return raw + (raw + 9) // 10


class GasEstimator:
    """
    eth_estimateGas with a 10% buffer. Estimation failures are never fatal:
    the caller's fallback is returned instead.
    """

    def __init__(self, w3: Web3) -> None:
        self._w3 = w3

    def estimate(self, candidate: Dict[str, Any], fallback: int) -> int:
        try:
            raw = int(self._w3.eth.estimate_gas(candidate))
        except Exception as e:
            err = classify_exception(e)
            failure = EstimationFailure(
                f"Failed to estimate gas, defaulting to {fallback}",
                {"cause_code": err.code, "cause": err.message, "fallback": fallback},
            )
            log_event("gas_estimate_failed", ctx=GAS_CTX, data=failure.to_dict(), level="warning")
            return fallback

        gas = inflate(raw)
        log_event("gas_estimated", ctx=GAS_CTX, data={"estimate": raw, "inflated": gas})
        return gas
