import logging
import sys


class MainFormatter(logging.Formatter):
    """A custom formatter to handle regular logs and raw subprocess logs."""

    def format(self, record):
        # If the log is from the subprocess, just return the raw message.
        if record.name.startswith('proc.'):
            return record.getMessage()

        # Otherwise, use the default formatting.
        # Temporarily change the format string for the superclass call.
        original_format = self._style._fmt
        self._style._fmt = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'
        formatted_message = super().format(record)
        self._style._fmt = original_format
        return formatted_message


def setup_logging(console_level: int = logging.INFO) -> None:
    """
    Configures the root logger for the supervisor.
    Clears any previously configured handlers to prevent duplication and logs to
    stderr, so the subprocess keeps stdout to itself when its output is inherited.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    """
    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers to prevent re-adding them on re-runs
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    # Keep connection pool chatter out of DEBUG output.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
