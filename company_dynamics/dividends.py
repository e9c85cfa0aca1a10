"""Quarterly dividend distribution for mature companies.

An annual dividend is planned when a fiscal year closes and then paid out in
up to four quarterly installments as simulated days accumulate. Emitted
:class:`DividendEvent` objects queue up until the orchestrator drains them.
"""

from dataclasses import dataclass
from datetime import date
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

QUARTER_DAYS = 365 / 4
INSTALLMENTS_PER_YEAR = 4
NEGLIGIBLE_REMAINDER = 1.0
DIVIDEND_CASH_SHARE = 0.11
PROFITABLE_YEARS_REQUIRED = 3


@dataclass(frozen=True)
class DividendEvent:
    amount: float
    timestamp: Optional[date]


class DividendSchedule:
    """Pending dividend sub-state of a company.

    Attributes:
        remaining: Amount of the planned dividend not yet paid.
        installments_left: Installments still to be paid.
        accumulator_days: Days accumulated toward the next installment.
        events: Emitted dividend events awaiting :meth:`drain_events`.
    """

    def __init__(self):
        self.remaining = 0.0
        self.installments_left = 0
        self.accumulator_days = 0.0
        self.events: List[DividendEvent] = []

    @property
    def pending(self) -> bool:
        return self.remaining > 0 and self.installments_left > 0

    def clear(self) -> None:
        self.remaining = 0.0
        self.installments_left = 0
        self.accumulator_days = 0.0

    def accrue(self, dt_days: float) -> None:
        self.accumulator_days += dt_days

    def arm(self, amount: float) -> None:
        """Schedule ``amount`` to be paid over four quarterly installments."""
        self.remaining = amount
        self.installments_left = INSTALLMENTS_PER_YEAR
        self.accumulator_days = 0.0
        logger.info(f"Dividend of ${amount:,.0f} scheduled over {INSTALLMENTS_PER_YEAR} quarters")

    def process(self, cash: float, timestamp: Optional[date] = None) -> float:
        """Pay every installment that has come due.

        Args:
            cash: Cash available to pay from.
            timestamp: Tick date stamped on emitted events.

        Returns:
            float: Total paid this call; the caller deducts it from cash.
        """
        if self.remaining <= 0 or self.installments_left <= 0:
            if self.remaining <= 0:
                self.clear()
            return 0.0

        paid = 0.0
        while (
            self.installments_left > 0
            and self.remaining > 0
            and self.accumulator_days >= QUARTER_DAYS
        ):
            portion = self.remaining / self.installments_left
            payout = min(cash - paid, portion)
            if payout <= 0:
                break
            paid += payout
            self.remaining -= payout
            self.installments_left -= 1
            self.accumulator_days -= QUARTER_DAYS
            self.events.append(DividendEvent(payout, timestamp))
            logger.debug(f"Paid dividend installment of ${payout:,.0f}")

        if self.remaining <= NEGLIGIBLE_REMAINDER or self.installments_left <= 0:
            self.clear()
        return paid

    def settle(self, cash: float, timestamp: Optional[date] = None) -> float:
        """Pay out what is left of the current plan in one final installment.

        Called at a fiscal year close before a new plan is armed. The fourth
        quarter of a plan may not have accrued by then.

        Args:
            cash: Cash available to pay from.
            timestamp: Tick date stamped on the emitted event.

        Returns:
            float: Amount paid; the caller deducts it from cash.
        """
        payout = min(cash, self.remaining) if self.pending else 0.0
        if payout > 0:
            self.events.append(DividendEvent(payout, timestamp))
            logger.debug(f"Settled outstanding dividend of ${payout:,.0f}")
        self.clear()
        return max(0.0, payout)

    def drain_events(self) -> List[DividendEvent]:
        """Return and clear the queued dividend events."""
        events = self.events
        self.events = []
        return events


def plan_dividend(recent_profits: List[float], cash: float, debt: float) -> float:
    """Dividend to plan at a fiscal year close.

    A company with no debt, positive cash and at least three profitable most
    recent fiscal years distributes 11% of its cash.
    """
    if debt > 0 or cash <= 0 or len(recent_profits) < PROFITABLE_YEARS_REQUIRED:
        return 0.0
    if not all(p > 0 for p in recent_profits[-PROFITABLE_YEARS_REQUIRED:]):
        return 0.0
    return min(cash, cash * DIVIDEND_CASH_SHARE)
