"""
Logging system for the strategy logic editor.
Provides structured, human-readable logs with console and optional file output.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

# ANSI color codes for terminal output
class Colors:
    RESET = "\033[0m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    BOLD = "\033[1m"


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.CYAN,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{Colors.RESET}"
        record.msg = f"{color}{record.msg}{Colors.RESET}"
        return super().format(record)


class StrategyLogger:
    """
    Central logging system for the strategy editor.

    Features:
    - Console output with colors
    - Daily file output (optional)
    - Separate error log file (file only, errors are already on the console)
    - Structured one-line records for compile and submission events
    """

    _instance: Optional['StrategyLogger'] = None
    _initialized: bool = False

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, log_dir: Optional[str] = "logs", log_level: str = "INFO"):
        if StrategyLogger._initialized:
            return

        self.log_dir = Path(log_dir) if log_dir else None
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self.main_logger = self._create_logger("strategy", log_level)
        self.error_logger = self._create_logger("strategy.errors", "ERROR", "errors", console=False)

        StrategyLogger._initialized = True

    def _create_logger(
        self,
        name: str,
        level: str,
        file_prefix: Optional[str] = None,
        console: bool = True,
    ) -> logging.Logger:
        """Create a configured logger instance."""
        logger = logging.getLogger(name)
        logger.setLevel(getattr(logging, level.upper()))
        logger.handlers.clear()
        logger.propagate = False

        if console:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(ColoredFormatter(
                "%(asctime)s | %(levelname)s | %(message)s",
                datefmt="%H:%M:%S"
            ))
            logger.addHandler(console_handler)

        # File handler (plain text, no colors)
        if self.log_dir is not None:
            prefix = file_prefix or "strategy"
            log_file = self.log_dir / f"{prefix}_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
            logger.addHandler(file_handler)

        # Keep logging.lastResort from echoing to stderr
        if not logger.handlers:
            logger.addHandler(logging.NullHandler())

        return logger

    def info(self, msg: str, *args, **kwargs):
        """Log info message."""
        self.main_logger.info(msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        """Log debug message."""
        self.main_logger.debug(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        """Log warning message."""
        self.main_logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        """Log error message."""
        self.main_logger.error(msg, *args, **kwargs)
        self.error_logger.error(msg, *args, **kwargs)

    def compile(self, branches: int, conditions: int, corrections: int = 0, **kwargs):
        """
        Log a compile pass with structured format.

        Args:
            branches: Number of enabled branches in the compiled config
            conditions: Number of live conditions emitted
            corrections: Number of thresholds clamped during compilation
            **kwargs: Additional fields
        """
        parts = [
            "[COMPILE]",
            f"branches={branches}",
            f"conditions={conditions}",
        ]
        if corrections:
            parts.append(f"clamped={corrections}")
        for key, value in kwargs.items():
            parts.append(f"{key}={value}")
        self.main_logger.info(" | ".join(parts))

    def reference(self, status: str, ref_key: str, reason: str, **kwargs):
        """
        Log a value reference finding.

        Args:
            status: DANGLING or UNUSED
            ref_key: Series or indicator key of the reference
            reason: Human-readable reason
            **kwargs: Additional context (container, group, condition ids)
        """
        parts = [f"[REF:{status}]", ref_key, reason]
        for key, value in kwargs.items():
            parts.append(f"{key}={value}")
        self.main_logger.warning(" | ".join(parts))

    def submission(self, status: str, name: str, **kwargs):
        """
        Log a strategy submission attempt.

        Args:
            status: SENT, ACCEPTED or FAILED
            name: Strategy name
            **kwargs: Additional context
        """
        parts = [f"[SUBMIT:{status}]", f"name={name}"]
        for key, value in kwargs.items():
            parts.append(f"{key}={value}")
        msg = " | ".join(parts)
        if status == "FAILED":
            self.error(msg)
        else:
            self.main_logger.info(msg)


# Global logger instance
_logger: Optional[StrategyLogger] = None


def get_logger(log_dir: Optional[str] = None, log_level: Optional[str] = None) -> StrategyLogger:
    """Get or create the global logger instance (settings default from config)."""
    global _logger
    if _logger is None:
        if log_dir is None or log_level is None:
            from ..config.config import get_config
            log_config = get_config().log
            if log_dir is None:
                log_dir = log_config.log_dir if log_config.log_to_file else ""
            if log_level is None:
                log_level = log_config.level
        _logger = StrategyLogger(log_dir or None, log_level)
    return _logger


def setup_logger(log_dir: Optional[str] = "logs", log_level: str = "INFO") -> StrategyLogger:
    """Initialize the logger with custom settings."""
    global _logger
    StrategyLogger._initialized = False
    StrategyLogger._instance = None
    _logger = StrategyLogger(log_dir, log_level)
    return _logger
