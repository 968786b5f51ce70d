"""
Loop building and yield projection for xEGLD multiply strategies.

A loop borrows EGLD against the current xEGLD collateral, swaps it 1:1 into
xEGLD and resupplies it. Two projection modes share one result type:

    loop-count mode:  iterate a fixed number of loops, compound monthly
    target-LTV mode:  jump straight to L = 1/(1 - λ), compound daily

find_max_safe_loops() extends the loop sequence until the next loop would
push the effective LTV over a safety ceiling.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .economics import (
    DEFAULTS,
    MIN_BORROW_FLOOR,
    InvalidArgument,
    apr_to_daily,
    check_amount,
    check_liquidation_threshold,
    check_ltv,
    compound_growth,
    depeg_to_liquidation,
    leverage_from_ltv,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoopState:
    """Collateral and debt after a number of loops."""
    initial_amount: float
    loops: int
    collateral: float
    debt: float

    @property
    def leverage(self) -> float:
        """Collateral relative to the initial deposit."""
        return self.collateral / self.initial_amount

    @property
    def eff_ltv(self) -> float:
        """Debt/collateral ratio."""
        return self.debt / self.collateral


@dataclass(frozen=True)
class LoopResult:
    """Yield projection for one looping configuration."""
    loops: int
    net_apy: float          # Net yield on initial capital (%)
    leverage: float
    eff_ltv: float
    depeg_to_liq: float     # Collateral depeg that triggers liquidation (%)
    annual_egld: float      # Net yield after one year (xEGLD)
    annual_usd: float
    final_position: float   # Net position after one year (xEGLD)
    collateral: float
    debt: float

    def to_dict(self) -> dict:
        """Convert to dictionary for tabular output."""
        return {
            "loops": self.loops,
            "net_apy": self.net_apy,
            "leverage": self.leverage,
            "eff_ltv": self.eff_ltv,
            "depeg_to_liq": self.depeg_to_liq,
            "annual_egld": self.annual_egld,
            "annual_usd": self.annual_usd,
            "final_position": self.final_position,
            "collateral": self.collateral,
            "debt": self.debt,
        }


# =============================================================================
# Loop Building
# =============================================================================

def _borrow_floor(min_borrow: float) -> float:
    return max(min_borrow, MIN_BORROW_FLOOR)


def build_loops(
    initial_amount: float,
    loops: int,
    ltv: float,
    min_borrow: float = DEFAULTS["min_borrow"],
) -> LoopState:
    """
    Apply up to `loops` borrow-swap-redeposit cycles.

    Each cycle borrows the remaining headroom ltv * collateral - debt and adds
    it to both sides. Building stops early once the headroom drops below
    min_borrow, so the returned loop count can be lower than requested.

    Args:
        initial_amount: Starting collateral (xEGLD)
        loops: Maximum number of loops to perform
        ltv: Borrowing LTV (0 to <1)
        min_borrow: Smallest borrow worth performing

    Returns:
        LoopState with the loops actually performed
    """
    check_amount(initial_amount)
    check_ltv(ltv)
    if loops < 0:
        raise InvalidArgument(f"loops must be >= 0, got {loops}")

    min_borrow = _borrow_floor(min_borrow)
    collateral = initial_amount
    debt = 0.0
    performed = 0

    for _ in range(loops):
        available = ltv * collateral - debt
        if available < min_borrow:
            logger.debug("Stopped after %d of %d loops (headroom %.6f)", performed, loops, available)
            break
        if collateral + available == collateral:
            # Headroom below float resolution of the collateral
            logger.debug("Converged after %d of %d loops", performed, loops)
            break
        debt += available
        collateral += available
        performed += 1

    return LoopState(initial_amount, performed, collateral, debt)


def theoretical_position(initial_amount: float, ltv_target: float) -> dict:
    """
    Calculate the fully-leveraged position for a target LTV.

    L = 1 / (1 - λ), supply = A · L, borrow = A · (L - 1)

    Args:
        initial_amount: Starting collateral
        ltv_target: Target LTV

    Returns:
        Dict with 'supply', 'borrow' and 'leverage'
    """
    check_amount(initial_amount)
    leverage = leverage_from_ltv(ltv_target)
    return {
        "supply": initial_amount * leverage,
        "borrow": initial_amount * (leverage - 1.0),
        "leverage": leverage,
    }


# =============================================================================
# Yield Projection
# =============================================================================

def _project(
    state: LoopState,
    liquidation_threshold: float,
    supply_apy: float,
    borrow_apy: float,
    price: float,
    periods: int,
) -> LoopResult:
    gross = state.collateral * compound_growth(supply_apy, periods)
    cost = state.debt * compound_growth(borrow_apy, periods)
    net = float(gross - cost)
    eff_ltv = state.eff_ltv

    return LoopResult(
        loops=state.loops,
        net_apy=net / state.initial_amount * 100.0,
        leverage=state.leverage,
        eff_ltv=eff_ltv,
        depeg_to_liq=depeg_to_liquidation(eff_ltv, liquidation_threshold),
        annual_egld=net,
        annual_usd=net * price,
        final_position=state.initial_amount + net,
        collateral=state.collateral,
        debt=state.debt,
    )


def calculate_looping_yield(
    initial_amount: float,
    loops: int,
    ltv: float,
    liquidation_threshold: float,
    supply_apy: float,
    borrow_apy: float,
    min_borrow: float = DEFAULTS["min_borrow"],
    price: float = DEFAULTS["price"],
    periods: int = DEFAULTS["compounding_periods"],
) -> LoopResult:
    """
    Project one-year yield after a fixed number of loops.

    Supply and borrow are compounded `periods` times a year (monthly by
    default) on the collateral and debt left by build_loops().

    Args:
        initial_amount: Starting collateral (xEGLD)
        loops: Requested number of loops
        ltv: Borrowing LTV
        liquidation_threshold: Liquidation threshold for depeg buffer
        supply_apy: Supply APY (%)
        borrow_apy: Borrow APY (%)
        min_borrow: Smallest borrow worth performing
        price: EGLD price in USD
        periods: Compounding periods per year

    Returns:
        LoopResult
    """
    check_liquidation_threshold(liquidation_threshold)
    state = build_loops(initial_amount, loops, ltv, min_borrow)
    return _project(state, liquidation_threshold, supply_apy, borrow_apy, price, periods)


def calculate_target_ltv_yield(
    initial_amount: float,
    ltv_target: float,
    supply_apy: float,
    borrow_apy: float,
    liquidation_threshold: Optional[float] = None,
    price: float = DEFAULTS["price"],
    min_borrow: float = DEFAULTS["min_borrow"],
    days: int = DEFAULTS["days_per_year"],
) -> LoopResult:
    """
    Project one-year yield for a position opened directly at a target LTV.

    Skips iterative looping: the position starts at the theoretical leverage
    1/(1 - λ) and compounds daily for a year. The reported loop count is the
    number of loops build_loops() needs to get there.

    Args:
        initial_amount: Starting collateral (xEGLD)
        ltv_target: Target LTV
        supply_apy: Supply APY (%)
        borrow_apy: Borrow APY (%)
        liquidation_threshold: Liquidation threshold (default from DEFAULTS)
        price: EGLD price in USD
        min_borrow: Loop convergence threshold for the loop count
        days: Days to compound

    Returns:
        LoopResult
    """
    if liquidation_threshold is None:
        liquidation_threshold = DEFAULTS["liquidation_threshold"]
    check_liquidation_threshold(liquidation_threshold)

    position = theoretical_position(initial_amount, ltv_target)
    supply_daily = apr_to_daily(supply_apy / 100.0)
    borrow_daily = apr_to_daily(borrow_apy / 100.0)

    supply = position["supply"] * (1.0 + supply_daily) ** days
    borrow = position["borrow"] * (1.0 + borrow_daily) ** days

    final_position = float(supply - borrow)
    net = final_position - initial_amount
    loops = build_loops(initial_amount, DEFAULTS["max_loops"], ltv_target, min_borrow).loops

    return LoopResult(
        loops=loops,
        net_apy=net / initial_amount * 100.0,
        leverage=position["leverage"],
        eff_ltv=ltv_target,
        depeg_to_liq=depeg_to_liquidation(ltv_target, liquidation_threshold),
        annual_egld=net,
        annual_usd=net * price,
        final_position=final_position,
        collateral=position["supply"],
        debt=position["borrow"],
    )


# =============================================================================
# Max Safe Loop Search
# =============================================================================

def find_max_safe_loops(
    initial_amount: float,
    ltv: float,
    liquidation_threshold: float,
    supply_apy: float,
    borrow_apy: float,
    max_safe_ltv: float = DEFAULTS["max_safe_ltv"],
    min_borrow: float = DEFAULTS["min_borrow"],
    price: float = DEFAULTS["price"],
    periods: int = DEFAULTS["compounding_periods"],
) -> LoopResult:
    """
    Find the most loops whose effective LTV stays within max_safe_ltv.

    Each candidate loop is evaluated before it is applied; the first loop that
    would push debt/collateral over the ceiling is rejected and the search
    ends. The search also ends when the borrow headroom falls below
    min_borrow or becomes too small to change the collateral.

    Args:
        initial_amount: Starting collateral (xEGLD)
        ltv: Borrowing LTV
        liquidation_threshold: Liquidation threshold for depeg buffer
        supply_apy: Supply APY (%)
        borrow_apy: Borrow APY (%)
        max_safe_ltv: Effective LTV ceiling (0 to <1)
        min_borrow: Smallest borrow worth performing
        price: EGLD price in USD
        periods: Compounding periods per year

    Returns:
        LoopResult for the last safe state
    """
    check_amount(initial_amount)
    check_ltv(ltv)
    check_liquidation_threshold(liquidation_threshold)
    if not 0.0 < max_safe_ltv < 1.0:
        raise InvalidArgument(f"max_safe_ltv must be in (0, 1), got {max_safe_ltv}")

    min_borrow = _borrow_floor(min_borrow)
    collateral = initial_amount
    debt = 0.0
    loops = 0

    while True:
        available = ltv * collateral - debt
        if available < min_borrow:
            break

        next_debt = debt + available
        next_collateral = collateral + available
        if next_collateral == collateral:
            # Headroom below float resolution of the collateral
            break
        if next_debt / next_collateral > max_safe_ltv:
            break

        debt = next_debt
        collateral = next_collateral
        loops += 1

    logger.debug("Max safe loops at ltv=%.4f, ceiling=%.4f: %d", ltv, max_safe_ltv, loops)
    state = LoopState(initial_amount, loops, collateral, debt)
    return _project(state, liquidation_threshold, supply_apy, borrow_apy, price, periods)
