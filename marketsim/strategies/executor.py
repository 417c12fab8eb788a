"""Applies strategy signals to the ledger the same way manual trades are applied."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..errors import LedgerError
from ..paper.ledger import Portfolio, Transaction, TradeType
from ..utils.logging import TradeLogger, get_logger
from .base import TradeSignal

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ExecutionResult:
    signal: TradeSignal
    transaction: Optional[Transaction] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.transaction is not None


class SignalExecutor:
    """Executes signals through Portfolio.buy/sell with strategy attribution.

    Ledger rejections are logged and returned in the result; they never
    propagate to the caller.
    """

    def __init__(self, portfolio: Portfolio):
        self.portfolio = portfolio

    def execute(self, signal: TradeSignal) -> ExecutionResult:
        with TradeLogger(LOGGER, signal.symbol, signal.strategy) as trade_log:
            trade_log.log_decision(signal.direction.value, signal.amount, signal.price, signal.reason)
            try:
                if signal.direction == TradeType.BUY:
                    transaction = self.portfolio.buy(
                        signal.symbol, signal.cash_amount, strategy=signal.strategy,
                    )
                else:
                    transaction = self.portfolio.sell(
                        signal.symbol, signal.asset_amount, strategy=signal.strategy,
                    )
            except LedgerError as e:
                LOGGER.warning(
                    f"Signal from {signal.strategy} rejected: {e}",
                    extra={'symbol': signal.symbol, 'strategy': signal.strategy, 'reason': str(e)},
                )
                return ExecutionResult(signal=signal, error=str(e))
            trade_log.log_execution(transaction.type.value, transaction.asset_amount, transaction.price)
        return ExecutionResult(signal=signal, transaction=transaction)

    def execute_all(self, signals: Iterable[TradeSignal]) -> List[ExecutionResult]:
        return [self.execute(signal) for signal in signals]
