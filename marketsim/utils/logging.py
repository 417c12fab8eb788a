"""
Structured logging utilities for marketsim.

Provides JSON-formatted log files alongside a human-readable console stream.
"""
import logging
import json
import os
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional

# Extra record attributes copied into the JSON payload when present
EXTRA_FIELDS = (
    'symbol',
    'strategy',
    'action',
    'quantity',
    'price',
    'reason',
    'order_type',
    'tick',
    'event_type',
    'duration_ms',
)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def get_logger(name: str, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Get a structured logger with a JSON file handler and a console handler.

    Args:
        name: Logger name (usually __name__)
        log_dir: Directory to store log files. Defaults to $MARKETSIM_LOG_DIR or "logs".

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)

    log_dir = log_dir or os.getenv("MARKETSIM_LOG_DIR", "logs")
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    logfile = os.path.join(log_dir, "marketsim.log")
    json_handler = logging.FileHandler(filename=logfile, encoding='utf-8', delay=True)
    json_handler.setFormatter(JSONFormatter())

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))

    logger.addHandler(json_handler)
    logger.addHandler(console_handler)

    return logger


class TradeLogger:
    """Context manager for logging trade decisions and executions"""

    def __init__(self, logger: logging.Logger, symbol: str, strategy: Optional[str]):
        self.logger = logger
        self.symbol = symbol
        self.strategy = strategy or "manual"
        self.start_time = None

    def __enter__(self):
        self.start_time = datetime.now(timezone.utc)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.logger.error(
                f"Trade execution failed for {self.symbol}: {exc_val}",
                extra={
                    'symbol': self.symbol,
                    'strategy': self.strategy,
                    'action': 'trade_error',
                    'duration_ms': self._elapsed_ms(),
                },
            )
        return False

    def _elapsed_ms(self) -> float:
        if self.start_time is None:
            return 0.0
        return (datetime.now(timezone.utc) - self.start_time).total_seconds() * 1000

    def log_decision(self, action: str, quantity: float, price: float, reason: str):
        """Log a trading decision"""
        self.logger.info(
            f"Decision: {action} {quantity} {self.symbol} @ {price} ({reason})",
            extra={
                'symbol': self.symbol,
                'strategy': self.strategy,
                'action': action,
                'quantity': quantity,
                'price': price,
                'reason': reason,
                'event_type': 'decision',
            }
        )

    def log_execution(self, action: str, quantity: float, price: float,
                      order_type: Optional[str] = None):
        """Log a trade execution"""
        self.logger.info(
            f"Executed: {action} {quantity} {self.symbol} @ {price}",
            extra={
                'symbol': self.symbol,
                'strategy': self.strategy,
                'action': action,
                'quantity': quantity,
                'price': price,
                'order_type': order_type,
                'event_type': 'execution',
                'duration_ms': self._elapsed_ms(),
            }
        )
