"""
Logging setup. Every module logs through ``logging.getLogger(__name__)``;
components also accept an injected logger so a run can be traced on its own.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


class RunLoggerAdapter(logging.LoggerAdapter):
    """Prefix every message with the run id."""

    def process(self, msg, kwargs):
        return f"[run {self.extra['run_id']}] {msg}", kwargs


def run_logger(logger: logging.Logger, run_id: str) -> logging.LoggerAdapter:
    return RunLoggerAdapter(logger, {"run_id": run_id})
