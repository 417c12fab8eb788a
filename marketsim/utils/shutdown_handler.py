"""
Graceful shutdown handler for marketsim.

Provides centralized shutdown logic to:
- Stop the background price lane of every registered session
- Cancel recurring investments
- Save session state
- Flush logs
"""
import sys
import logging
from typing import Optional, Any

from marketsim.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ShutdownHandler:
    """Handles graceful shutdown of running simulation sessions."""

    def __init__(self):
        self._shutdown_initiated = False
        self._sessions = []

    def register_session(self, session: Any) -> None:
        """Register a session for teardown on shutdown."""
        if session not in self._sessions:
            self._sessions.append(session)

    def unregister_session(self, session: Any) -> None:
        if session in self._sessions:
            self._sessions.remove(session)

    def shutdown(self, signal_num: Optional[int] = None, frame: Optional[Any] = None) -> None:
        """
        Execute graceful shutdown sequence.

        Args:
            signal_num: Signal number if called from signal handler
            frame: Frame object if called from signal handler
        """
        if self._shutdown_initiated:
            LOGGER.warning("Shutdown already in progress, ignoring duplicate call")
            return

        self._shutdown_initiated = True

        if signal_num is not None:
            import signal
            signal_name = signal.Signals(signal_num).name
            LOGGER.info(f"Received signal {signal_name} ({signal_num}), initiating graceful shutdown...")
        else:
            LOGGER.info("Initiating graceful shutdown...")

        for session in list(self._sessions):
            try:
                session.shutdown()
            except Exception as e:
                LOGGER.error(f"Error shutting down session: {e}", exc_info=True)
        self._sessions.clear()

        try:
            for handler in logging.getLogger().handlers:
                handler.flush()
            for handler in LOGGER.handlers:
                handler.flush()
        except Exception as e:
            print(f"  WARNING: Failed to flush logs: {e}")

        LOGGER.info("Graceful shutdown complete")

    def reset(self) -> None:
        self._shutdown_initiated = False
        self._sessions.clear()

    def __call__(self, signal_num: int, frame: Any) -> None:
        """Allow instance to be used as signal handler."""
        self.shutdown(signal_num, frame)
        sys.exit(0)


# Global shutdown handler instance
SHUTDOWN_HANDLER = ShutdownHandler()
