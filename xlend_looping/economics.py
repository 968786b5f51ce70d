"""
Core economic formulas for xEGLD looping on xLend.

This module holds the rate conversions and leverage relationships shared by the
loop builder, the max-safe-loop search and the year simulator.

Notation:
    r       : Annual rate as a decimal (0.0609 for 6.09%)
    APY     : Annual rate as a percentage (6.09)
    λ       : LTV (debt/collateral ratio)
    λ̃       : Liquidation threshold
    L       : Leverage = 1 / (1 - λ)
"""

import numpy as np
from typing import Union

# Type alias for numeric inputs (scalar or array)
Numeric = Union[float, np.ndarray]


class InvalidArgument(ValueError):
    """Raised when an engine input violates its contract."""


# =============================================================================
# Default Parameters
# =============================================================================

DEFAULTS = {
    # Loop building
    "min_borrow": 0.01,          # Smallest borrow worth another loop (xEGLD)
    "max_loops": 500,            # Safety cap for target-LTV loop counting

    # Compounding
    "days_per_year": 365,
    "compounding_periods": 12,   # Monthly compounding for loop-count mode

    # Simulation
    "snapshot_interval": 7,      # Record a trajectory point every N days

    # Risk
    "max_safe_ltv": 0.92,
    "liquidation_threshold": 0.965,   # xLend e-mode (xEGLD/EGLD)
    "depeg_buffer": 10.0,        # Warn below this depeg-to-liquidation (%)

    # Pricing
    "price": 8.0,                # EGLD price in USD

    # LTV levels for the comparison table
    "ltv_steps": (0.5, 0.6, 0.7, 0.8, 0.85, 0.9, 0.92, 0.925),
}

# Strictly positive floor on the borrow increment; loops also stop once a
# borrow is too small to change the collateral
MIN_BORROW_FLOOR = 1e-9


# =============================================================================
# Validation
# =============================================================================

def check_ltv(ltv: float, name: str = "ltv") -> None:
    """Raise InvalidArgument unless 0 <= ltv < 1."""
    if not 0.0 <= ltv < 1.0:
        raise InvalidArgument(f"{name} must be in [0, 1), got {ltv}")


def check_amount(amount: float, name: str = "initial_amount") -> None:
    """Raise InvalidArgument unless amount is strictly positive."""
    if not amount > 0:
        raise InvalidArgument(f"{name} must be positive, got {amount}")


def check_liquidation_threshold(liquidation_threshold: float) -> None:
    """Raise InvalidArgument unless 0 < liquidation_threshold <= 1."""
    if not 0.0 < liquidation_threshold <= 1.0:
        raise InvalidArgument(
            f"liquidation_threshold must be in (0, 1], got {liquidation_threshold}"
        )


# =============================================================================
# Core Formulas
# =============================================================================

def apr_to_daily(
    annual_rate: Numeric,
    days_per_year: float = DEFAULTS["days_per_year"],
) -> Numeric:
    """
    Convert an annual rate to a daily compounding rate.

    r_daily = (1 + r) ** (1/365) - 1

    Compounding r_daily over 365 days reproduces r exactly (up to
    floating-point error).

    Args:
        annual_rate: Annual rate as a decimal (scalar or array)
        days_per_year: Compounding periods per year

    Returns:
        Daily rate as a decimal

    Raises:
        InvalidArgument: If any rate is <= -1
    """
    if np.any(np.asarray(annual_rate) <= -1.0):
        raise InvalidArgument(f"annual_rate must be > -1, got {annual_rate}")
    return np.power(1.0 + annual_rate, 1.0 / days_per_year) - 1.0


def compound_growth(
    apy_pct: Numeric,
    periods: int = DEFAULTS["compounding_periods"],
) -> Numeric:
    """
    Calculate one-year growth of a balance compounded `periods` times.

    g = (1 + APY/100/n) ** n - 1

    Args:
        apy_pct: Annual rate as a percentage
        periods: Compounding periods per year (12 = monthly)

    Returns:
        Growth over one year as a decimal (0.0627 for 6.27%)
    """
    return np.power(1.0 + apy_pct / 100.0 / periods, periods) - 1.0


def leverage_from_ltv(lambda_t: float) -> float:
    """
    Calculate leverage from LTV.

    L = 1 / (1 - λ)

    Args:
        lambda_t: LTV (0 to <1)

    Returns:
        Leverage multiple

    Raises:
        InvalidArgument: If λ is outside [0, 1)
    """
    check_ltv(lambda_t)
    return 1.0 / (1.0 - lambda_t)


def ltv_from_leverage(L: float) -> float:
    """
    Calculate LTV from leverage.

    λ = (L - 1) / L = 1 - 1/L

    Args:
        L: Leverage multiple (>=1)

    Returns:
        LTV
    """
    if L < 1.0:
        raise InvalidArgument(f"leverage must be >= 1, got {L}")
    return 1.0 - 1.0 / L


def depeg_to_liquidation(eff_ltv: float, liquidation_threshold: float) -> float:
    """
    Calculate the collateral depeg that would trigger liquidation.

    A collateral price drop of d moves LTV to λ / (1 - d), so liquidation
    happens when d = 1 - λ / λ̃.

    Args:
        eff_ltv: Effective LTV of the position
        liquidation_threshold: Liquidation threshold λ̃

    Returns:
        Depeg as a percentage, floored at 0
    """
    check_liquidation_threshold(liquidation_threshold)
    return max(0.0, (1.0 - eff_ltv / liquidation_threshold) * 100.0)
