"""Recurring (dollar-cost averaging) investments.

Plans are run from the interactive lane's loop, never from their own
timers, so they mutate the ledger from the same single writer as manual
trades. The effective interval is ``interval_seconds / speed_multiplier``.
"""
from __future__ import annotations

import itertools
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..errors import LedgerError
from ..utils.logging import get_logger
from .ledger import Portfolio, Transaction

LOGGER = get_logger(__name__)

ORDER_TYPE = "DCA"

_plan_ids = itertools.count(1)


@dataclass
class RecurringInvestment:
    symbol: str
    cash_amount: float
    interval_seconds: float
    plan_id: int = field(default_factory=lambda: next(_plan_ids))
    next_run: Optional[float] = None
    runs: int = 0
    skipped: int = 0

    def __post_init__(self):
        if self.cash_amount <= 0:
            raise ValueError("cash_amount must be > 0")
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

    def effective_interval(self, speed_multiplier: float) -> float:
        return self.interval_seconds / speed_multiplier

    def run(self, portfolio: Portfolio) -> Optional[Transaction]:
        """Buy once; returns None when the plan was skipped."""
        if portfolio.cash < self.cash_amount:
            self.skipped += 1
            LOGGER.info(
                f"Recurring buy of {self.symbol} skipped: insufficient cash",
                extra={'symbol': self.symbol, 'order_type': ORDER_TYPE, 'reason': 'insufficient_cash'},
            )
            return None
        try:
            transaction = portfolio.buy(self.symbol, self.cash_amount, order_type=ORDER_TYPE)
        except LedgerError as e:
            self.skipped += 1
            LOGGER.warning(
                f"Recurring buy of {self.symbol} failed: {e}",
                extra={'symbol': self.symbol, 'order_type': ORDER_TYPE, 'reason': str(e)},
            )
            return None
        self.runs += 1
        return transaction

    def to_dict(self) -> Dict[str, object]:
        return {
            "symbol": self.symbol,
            "cash_amount": self.cash_amount,
            "interval_seconds": self.interval_seconds,
        }


class RecurringSchedule:
    """All active recurring investments of a session."""

    def __init__(self, speed_multiplier: float = 1.0, clock=time.monotonic):
        self.speed_multiplier = speed_multiplier
        self.clock = clock
        self._plans: Dict[int, RecurringInvestment] = {}

    def __len__(self) -> int:
        return len(self._plans)

    def plans(self) -> List[RecurringInvestment]:
        return list(self._plans.values())

    def add(self, plan: RecurringInvestment) -> RecurringInvestment:
        plan.next_run = self.clock() + plan.effective_interval(self.speed_multiplier)
        self._plans[plan.plan_id] = plan
        LOGGER.info(
            f"Recurring investment {plan.plan_id}: {plan.cash_amount} into {plan.symbol} every {plan.interval_seconds}s",
            extra={'symbol': plan.symbol, 'order_type': ORDER_TYPE},
        )
        return plan

    def cancel(self, plan_id: int) -> Optional[RecurringInvestment]:
        plan = self._plans.pop(plan_id, None)
        if plan is not None:
            plan.next_run = None
        return plan

    def cancel_all(self) -> int:
        count = len(self._plans)
        for plan_id in list(self._plans):
            self.cancel(plan_id)
        return count

    def set_speed(self, multiplier: float) -> None:
        """Reschedule every plan with the new speed."""
        self.speed_multiplier = multiplier
        now = self.clock()
        for plan in self._plans.values():
            plan.next_run = now + plan.effective_interval(multiplier)

    def run_due(self, portfolio: Portfolio) -> List[Transaction]:
        now = self.clock()
        executed: List[Transaction] = []
        for plan in list(self._plans.values()):
            if plan.next_run is None or now < plan.next_run:
                continue
            plan.next_run = now + plan.effective_interval(self.speed_multiplier)
            transaction = plan.run(portfolio)
            if transaction is not None:
                executed.append(transaction)
        return executed
