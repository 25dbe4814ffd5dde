"""Position sizing — pure math, no I/O.

Converts a risk percentage of equity into a stake amount for the ledger.
"""

from typing import Optional


def calculate_stake(
    equity: float,
    risk_pct: float,
    max_position_size: Optional[float] = None,
) -> float:
    """Calculate the stake to commit to one trade.

    Formula::

        stake = equity × (risk_pct / 100)
        stake = min(stake, max_position_size)   when a cap is given

    Args:
        equity: Current account equity (e.g. 800.0).
        risk_pct: Percentage of equity to commit (e.g. 5.0 for 5 %).
        max_position_size: Optional absolute cap on the stake.

    Returns:
        Stake amount (always positive).

    Raises:
        ValueError: If any input is non-positive.
    """
    if equity <= 0:
        raise ValueError(f"equity must be positive, got {equity}")
    if risk_pct <= 0:
        raise ValueError(f"risk_pct must be positive, got {risk_pct}")
    if max_position_size is not None and max_position_size <= 0:
        raise ValueError(
            f"max_position_size must be positive, got {max_position_size}"
        )

    stake = equity * (risk_pct / 100.0)
    if max_position_size is not None:
        stake = min(stake, max_position_size)
    return stake
