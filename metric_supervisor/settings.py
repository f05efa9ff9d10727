"""
This module contains the static settings for the metric supervisor.
It defines the environment variable names, optional defaults and the signal
sets the supervisor reacts to. Values that must come from the operator
(endpoint, metric, thresholds, signals) have no defaults;
they are read and validated by `metric_supervisor.config`.
"""

import signal
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

#* --- Environment Keys ---
ENV_PREFIX = "SUPERVISOR"

# Required, no defaults. Key -> SupervisorConfig field.
REQUIRED_SETTINGS = {
    "PROMURL": "metrics_url",           # Address of the prometheus metrics exporter (http://127.0.0.1:8041)
    "METRIC": "metric_name",            # Name of the metric to test
    "METRICDELTA": "metric_delta",      # Expected metric delta between checks
    "WARMUPDURATION": "warmup_seconds", # Seconds of warmup period, also used after a signal was sent
    "CHECKDURATION": "check_seconds",   # Seconds between metric checks
    "FAILSIGNAL": "fail_signal",        # Signal sent when the metric stalls repeatedly
    "HANGSIGNAL": "hang_signal",        # Signal sent when the metric stalls after progress
}

#* --- Optional Settings ---
DEFAULT_FETCH_TIMEOUT = 10.0  # seconds per metrics request
DEFAULT_OUTPUT_MODE = "inherit"
OUTPUT_MODES = ("inherit", "log", "discard")
DEFAULT_LOG_LEVEL = "INFO"

#* --- Signal Handling ---
# Signals the supervisor listens for while waiting on the child.
OBSERVED_SIGNALS = (
    signal.SIGHUP,
    signal.SIGTERM,
    signal.SIGQUIT,
    signal.SIGABRT,
    signal.SIGINT,
)
# Subset of OBSERVED_SIGNALS that kills the child and exits with 0.
TERMINATION_SIGNALS = frozenset({signal.SIGTERM, signal.SIGQUIT})

#* --- Process Naming ---
PROCESS_TITLE_TEMPLATE = "metric-supervisor: {command}"
CHILD_LOGGER_NAME = "child"
