"""
xLend xEGLD Looping Economics Module

This module provides tools for analyzing the economics of leveraged xEGLD
multiply (looping) strategies on the xLend lending market.

Modules:
    economics: Core formulas (daily rates, leverage, depeg to liquidation)
    loops: Loop building, yield projection and max-safe-loop search
    simulation: Daily compounding simulation with high-borrow stress periods
    comparison: Comparison tables over LTV levels and loop counts
    market_data: Market rate contract with fallback substitution
"""

from .economics import (
    apr_to_daily,
    compound_growth,
    leverage_from_ltv,
    ltv_from_leverage,
    depeg_to_liquidation,
    InvalidArgument,
    DEFAULTS,
)

from .loops import (
    LoopState,
    LoopResult,
    build_loops,
    theoretical_position,
    calculate_looping_yield,
    calculate_target_ltv_yield,
    find_max_safe_loops,
)

from .simulation import (
    HighBorrowPeriod,
    SimulationPoint,
    YearSimulationResult,
    StressComparison,
    borrow_apr_for_day,
    simulate_year,
    create_default_high_borrow_periods,
    run_stress_comparison,
)

from .comparison import (
    generate_ltv_comparison,
    generate_loop_comparison,
    comparison_frame,
    risk_warnings,
)

from .market_data import (
    MarketRates,
    MarketDataResult,
    MarketDataError,
    FALLBACK_RATES,
    parse_market_payload,
    fetch_market_rates,
)

__version__ = "0.1.0"
__all__ = [
    # Economics
    "apr_to_daily",
    "compound_growth",
    "leverage_from_ltv",
    "ltv_from_leverage",
    "depeg_to_liquidation",
    "InvalidArgument",
    "DEFAULTS",
    # Loops
    "LoopState",
    "LoopResult",
    "build_loops",
    "theoretical_position",
    "calculate_looping_yield",
    "calculate_target_ltv_yield",
    "find_max_safe_loops",
    # Simulation
    "HighBorrowPeriod",
    "SimulationPoint",
    "YearSimulationResult",
    "StressComparison",
    "borrow_apr_for_day",
    "simulate_year",
    "create_default_high_borrow_periods",
    "run_stress_comparison",
    # Comparison
    "generate_ltv_comparison",
    "generate_loop_comparison",
    "comparison_frame",
    "risk_warnings",
    # Market Data
    "MarketRates",
    "MarketDataResult",
    "MarketDataError",
    "FALLBACK_RATES",
    "parse_market_payload",
    "fetch_market_rates",
]
