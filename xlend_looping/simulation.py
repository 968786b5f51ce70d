"""
Day-by-day simulation of a leveraged xEGLD position.

Compounds supply and debt daily over a fixed horizon. Borrow rates can be
overridden by high-borrow periods to stress-test a position that is profitable
at normal rates but may erode during temporary rate spikes.
"""

import logging
import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .economics import (
    DEFAULTS,
    InvalidArgument,
    apr_to_daily,
    check_amount,
    leverage_from_ltv,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HighBorrowPeriod:
    """Closed day interval with an overriding borrow APR."""
    start_day: int
    end_day: int           # Inclusive
    borrow_apr: float      # Decimal

    def contains(self, day: int) -> bool:
        return self.start_day <= day <= self.end_day


@dataclass(frozen=True)
class SimulationPoint:
    """Position snapshot at the end of a day."""
    day: int
    net_position: float
    collateral: float
    debt: float


@dataclass(frozen=True)
class YearSimulationResult:
    """Container for simulation results."""

    points: List[SimulationPoint]
    final_net_position: float
    effective_net_apy: float     # (%)
    total_supply_earned: float
    total_borrow_paid: float
    leverage: float
    eff_ltv: float

    def to_dataframe(self) -> pd.DataFrame:
        """Trajectory as a DataFrame indexed by day."""
        df = pd.DataFrame(
            [(p.day, p.net_position, p.collateral, p.debt) for p in self.points],
            columns=["day", "net_position", "collateral", "debt"],
        )
        return df.set_index("day")

    def summary(self) -> str:
        """Return formatted summary string."""
        last_day = self.points[-1].day if self.points else 0
        lines = [
            f"Simulation Results (Leverage: {self.leverage:.2f}x, LTV: {self.eff_ltv*100:.1f}%)",
            "=" * 60,
            f"Duration: {last_day} days",
            f"Final Net Position: {self.final_net_position:.4f}",
            f"Effective Net APY: {self.effective_net_apy:.2f}%",
            f"Supply Earned: {self.total_supply_earned:.4f}",
            f"Borrow Paid: {self.total_borrow_paid:.4f}",
            "=" * 60,
        ]
        return "\n".join(lines)


def borrow_apr_for_day(
    day: int,
    borrow_apr_normal: float,
    high_borrow_periods: Sequence[HighBorrowPeriod] = (),
) -> float:
    """
    Borrow APR in effect on a given day.

    Periods are scanned in order and the first one containing the day wins;
    overlapping periods are not merged.
    """
    for period in high_borrow_periods:
        if period.contains(day):
            return period.borrow_apr
    return borrow_apr_normal


def simulate_year(
    initial_amount: float,
    ltv_target: float,
    supply_apr: float,
    borrow_apr_normal: float,
    high_borrow_periods: Sequence[HighBorrowPeriod] = (),
    days: int = DEFAULTS["days_per_year"],
    snapshot_interval: int = DEFAULTS["snapshot_interval"],
) -> YearSimulationResult:
    """
    Simulate daily compounding of a leveraged position.

    The simulation:
    1. Opens the position at L = 1/(1 - ltv_target)
    2. Each day, picks that day's borrow rate (high-borrow period or normal)
    3. Compounds supply and debt by their daily rates
    4. Records a snapshot at day 0, every `snapshot_interval` days and the last day

    Args:
        initial_amount: Initial deposit (xEGLD, valued in EGLD)
        ltv_target: Target LTV (e.g. 0.925)
        supply_apr: xEGLD supply APR as decimal
        borrow_apr_normal: EGLD borrow APR as decimal
        high_borrow_periods: Borrow APR overrides, first match wins
        days: Number of days to simulate
        snapshot_interval: Days between trajectory snapshots

    Returns:
        YearSimulationResult with trajectory and totals
    """
    check_amount(initial_amount)
    if days < 0:
        raise InvalidArgument(f"days must be >= 0, got {days}")
    if snapshot_interval < 1:
        raise InvalidArgument(f"snapshot_interval must be >= 1, got {snapshot_interval}")

    leverage = leverage_from_ltv(ltv_target)
    supply_daily = apr_to_daily(supply_apr)

    # Daily balances, index i = end of day i (index 0 = opening position)
    supply = np.zeros(days + 1)
    borrow = np.zeros(days + 1)
    supply[0] = initial_amount * leverage
    borrow[0] = initial_amount * (leverage - 1.0)

    for day in range(days):
        apr = borrow_apr_for_day(day, borrow_apr_normal, high_borrow_periods)
        daily_borrow_rate = apr_to_daily(apr)

        supply[day + 1] = supply[day] * (1.0 + supply_daily)
        borrow[day + 1] = borrow[day] * (1.0 + daily_borrow_rate)

    # Interest accrues only through compounding, so totals are the balance deltas
    earned = np.diff(supply)
    paid = np.diff(borrow)

    snapshot_days = [0] + [d for d in range(1, days + 1) if d % snapshot_interval == 0 or d == days]
    points = [
        SimulationPoint(
            day=d,
            net_position=float(supply[d] - borrow[d]),
            collateral=float(supply[d]),
            debt=float(borrow[d]),
        )
        for d in snapshot_days
    ]

    final_net_position = float(supply[-1] - borrow[-1])
    logger.debug(
        "Simulated %d days at %.2fx with %d high-borrow periods",
        days, leverage, len(high_borrow_periods),
    )

    return YearSimulationResult(
        points=points,
        final_net_position=final_net_position,
        effective_net_apy=(final_net_position / initial_amount - 1.0) * 100.0,
        total_supply_earned=float(earned.sum()),
        total_borrow_paid=float(paid.sum()),
        leverage=leverage,
        eff_ltv=ltv_target,
    )


def create_default_high_borrow_periods(
    high_borrow_apr: float,
    num_periods: int = 3,
    days_per_period: int = 15,
    days: int = DEFAULTS["days_per_year"],
) -> List[HighBorrowPeriod]:
    """
    Place high-borrow periods through the year.

    Three periods start on days 30, 120 and 250. Other counts are spread
    evenly and clamped to the simulation horizon.

    Args:
        high_borrow_apr: Borrow APR during each period (decimal)
        num_periods: Number of periods
        days_per_period: Length of each period in days
        days: Simulation horizon

    Returns:
        List of HighBorrowPeriod
    """
    if num_periods <= 0 or days_per_period <= 0:
        return []

    if num_periods == 3:
        return [
            HighBorrowPeriod(start, start + days_per_period - 1, high_borrow_apr)
            for start in (30, 120, 250)
        ]

    spacing = days // (num_periods + 1)
    periods = []
    for i in range(num_periods):
        start_day = spacing * (i + 1) - days_per_period // 2
        periods.append(HighBorrowPeriod(
            start_day=max(0, start_day),
            end_day=min(days - 1, start_day + days_per_period - 1),
            borrow_apr=high_borrow_apr,
        ))
    return periods


@dataclass(frozen=True)
class StressComparison:
    """Optimistic vs stressed simulation of the same position."""
    optimistic: YearSimulationResult
    stressed: YearSimulationResult

    @property
    def apy_gap(self) -> float:
        """Net APY lost to high-borrow periods (percentage points)."""
        return self.optimistic.effective_net_apy - self.stressed.effective_net_apy


def run_stress_comparison(
    initial_amount: float,
    ltv_target: float,
    supply_apr: float,
    borrow_apr_normal: float,
    high_borrow_periods: Optional[Sequence[HighBorrowPeriod]] = None,
    high_borrow_apr: Optional[float] = None,
    days: int = DEFAULTS["days_per_year"],
) -> StressComparison:
    """
    Run the same position with and without high-borrow periods.

    Pass either explicit periods or a high_borrow_apr for the default
    three-period schedule.
    """
    if high_borrow_periods is None:
        if high_borrow_apr is None:
            raise InvalidArgument("Either high_borrow_periods or high_borrow_apr is required")
        high_borrow_periods = create_default_high_borrow_periods(high_borrow_apr, days=days)

    return StressComparison(
        optimistic=simulate_year(initial_amount, ltv_target, supply_apr, borrow_apr_normal, [], days),
        stressed=simulate_year(
            initial_amount, ltv_target, supply_apr, borrow_apr_normal, high_borrow_periods, days,
        ),
    )
