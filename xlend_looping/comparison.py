"""
Comparison tables over LTV levels and loop counts.

Maps the loop projections over a list of inputs and collects the results for
tabular display.
"""

import pandas as pd
from typing import List, Optional, Sequence

from .economics import DEFAULTS
from .loops import LoopResult, calculate_looping_yield, calculate_target_ltv_yield


def generate_ltv_comparison(
    initial_amount: float,
    supply_apy: float,
    borrow_apy: float,
    price: float = DEFAULTS["price"],
    ltv_steps: Sequence[float] = DEFAULTS["ltv_steps"],
    liquidation_threshold: Optional[float] = None,
) -> List[LoopResult]:
    """
    Project yields for each target LTV.

    Args:
        initial_amount: Starting collateral (xEGLD)
        supply_apy: Supply APY (%)
        borrow_apy: Borrow APY (%)
        price: EGLD price in USD
        ltv_steps: Target LTV levels, in output order
        liquidation_threshold: Liquidation threshold for depeg buffer

    Returns:
        List of LoopResult, one per LTV level
    """
    return [
        calculate_target_ltv_yield(
            initial_amount, ltv, supply_apy, borrow_apy,
            liquidation_threshold=liquidation_threshold, price=price,
        )
        for ltv in ltv_steps
    ]


def generate_loop_comparison(
    initial_amount: float,
    max_loops: int,
    ltv: float,
    liquidation_threshold: float,
    supply_apy: float,
    borrow_apy: float,
    min_borrow: float = DEFAULTS["min_borrow"],
    price: float = DEFAULTS["price"],
) -> List[LoopResult]:
    """
    Project yields for 1..max_loops loops.

    Args:
        initial_amount: Starting collateral (xEGLD)
        max_loops: Largest loop count to include
        ltv: Borrowing LTV
        liquidation_threshold: Liquidation threshold for depeg buffer
        supply_apy: Supply APY (%)
        borrow_apy: Borrow APY (%)
        min_borrow: Smallest borrow worth performing
        price: EGLD price in USD

    Returns:
        List of LoopResult, one per requested loop count
    """
    return [
        calculate_looping_yield(
            initial_amount, n, ltv, liquidation_threshold,
            supply_apy, borrow_apy, min_borrow=min_borrow, price=price,
        )
        for n in range(1, max_loops + 1)
    ]


def comparison_frame(results: Sequence[LoopResult]) -> pd.DataFrame:
    """
    Create comparison DataFrame from loop results.

    Rows keep the input order. eff_ltv is converted to a percentage for
    display alongside the other percentage columns.

    Args:
        results: Loop results from one of the generators

    Returns:
        DataFrame with one row per result
    """
    df = pd.DataFrame([r.to_dict() for r in results])
    if df.empty:
        return df
    df["eff_ltv"] = df["eff_ltv"] * 100
    return df


def risk_warnings(
    results: Sequence[LoopResult],
    depeg_buffer: float = DEFAULTS["depeg_buffer"],
) -> List[str]:
    """
    Collect risk warnings for a set of configurations.

    Args:
        results: Loop results to check
        depeg_buffer: Minimum acceptable depeg-to-liquidation (%)

    Returns:
        Warning messages, empty when every configuration looks safe
    """
    warnings = []
    if any(r.net_apy < 0 for r in results):
        warnings.append("Some configurations result in negative APY.")
    if any(r.depeg_to_liq < depeg_buffer for r in results):
        warnings.append(
            f"Low depeg buffer detected (<{depeg_buffer:.0f}%). Consider fewer loops for safety."
        )
    return warnings
