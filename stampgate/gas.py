"""
Gas budgeting for ledger writes.

A node's gas estimate is advisory: state can change between estimation
and inclusion. The budget adds a fixed 20% margin on top of the estimate,
computed in integer arithmetic because it denominates a fee commitment.
"""

from .config import GAS_MODE_ESTIMATE, GAS_MODE_FIXED, GAS_MODES, DEFAULT_FIXED_GAS_LIMIT

# 1.2 expressed as an exact ratio
SAFETY_NUMERATOR = 12
SAFETY_DENOMINATOR = 10


def budget(estimated_cost: int) -> int:
    """
    Return ceil(estimated_cost * 1.2).

    Raises:
        ValueError: If the estimate is negative or not an integer
    """
    if isinstance(estimated_cost, bool) or not isinstance(estimated_cost, int):
        raise ValueError(f"gas estimate must be an integer, got {estimated_cost!r}")
    if estimated_cost < 0:
        raise ValueError(f"gas estimate must not be negative, got {estimated_cost}")
    return -(-estimated_cost * SAFETY_NUMERATOR // SAFETY_DENOMINATOR)


class GasBudgeter:
    """
    Sizes the gas limit for a pending write.

    In ``estimate`` mode the node's estimate is scaled by the safety
    margin. ``fixed`` mode is the degraded mode: every write gets the same
    flat limit and no estimation call is needed.
    """

    def __init__(self, mode: str = GAS_MODE_ESTIMATE, fixed_limit: int = DEFAULT_FIXED_GAS_LIMIT):
        if mode not in GAS_MODES:
            raise ValueError(f"unknown gas mode {mode!r}")
        self.mode = mode
        self.fixed_limit = fixed_limit

    @property
    def needs_estimate(self) -> bool:
        return self.mode == GAS_MODE_ESTIMATE

    def budget_for(self, estimated_cost: int = None) -> int:
        if self.mode == GAS_MODE_FIXED:
            return self.fixed_limit
        if estimated_cost is None:
            raise ValueError("estimate mode requires a gas estimate")
        return budget(estimated_cost)
