import os
import signal
import logging
from typing import Callable, Dict, Mapping, NamedTuple, Optional, TypeVar

import metric_supervisor.settings as default_settings
from metric_supervisor.errors import ConfigError

log = logging.getLogger(__name__)

T = TypeVar("T")


class SupervisorConfig(NamedTuple):
    """
    Immutable supervisor configuration.

    The first seven fields must be supplied by the operator through
    `SUPERVISOR_*` environment variables (or a `.env` file). The remaining
    fields are optional and fall back to the defaults in `settings.py`.
    """
    metrics_url: str
    metric_name: str
    metric_delta: int
    warmup_seconds: int
    check_seconds: int
    fail_signal: int
    hang_signal: int
    fetch_timeout: float = default_settings.DEFAULT_FETCH_TIMEOUT
    output_mode: str = default_settings.DEFAULT_OUTPUT_MODE
    log_level: int = logging.INFO

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SupervisorConfig":
        """
        Builds the configuration from the environment.

        :param environ: The mapping to read from. Defaults to `os.environ`.
        :return: A validated SupervisorConfig.
        :raises ConfigError: If a required key is missing or any value is invalid.
        """
        env = os.environ if environ is None else environ
        prefix = default_settings.ENV_PREFIX

        raw = {}
        for key in default_settings.REQUIRED_SETTINGS:
            name = f"{prefix}_{key}"
            value = env.get(name, "").strip()
            if not value:
                raise ConfigError(f'Environment variable "{name}" is not set')
            raw[key] = value

        required = {
            field: _convert(f"{prefix}_{key}", raw[key], _REQUIRED_CONVERTERS[key])
            for key, field in default_settings.REQUIRED_SETTINGS.items()
        }
        config = cls(
            **required,
            fetch_timeout=_convert(
                f"{prefix}_FETCHTIMEOUT",
                env.get(f"{prefix}_FETCHTIMEOUT", "").strip() or str(default_settings.DEFAULT_FETCH_TIMEOUT),
                _positive_float,
            ),
            output_mode=_convert(
                f"{prefix}_OUTPUT",
                env.get(f"{prefix}_OUTPUT", "").strip() or default_settings.DEFAULT_OUTPUT_MODE,
                _output_mode,
            ),
            log_level=_convert(
                f"{prefix}_LOGLEVEL",
                env.get(f"{prefix}_LOGLEVEL", "").strip() or default_settings.DEFAULT_LOG_LEVEL,
                _log_level,
            ),
        )
        log.debug(f"Loaded configuration: {config}")
        return config


def parse_signal(value: str) -> int:
    """
    Parses a signal given as a number (`10`) or a name (`SIGUSR1`, `usr1`).

    :param value: The raw setting value.
    :return: The signal number.
    """
    value = value.strip()
    if value.lstrip("-").isdigit():
        number = int(value)
        if number <= 0 or number >= signal.NSIG:
            raise ValueError(f"signal number {number} out of range")
        return number

    name = value.upper()
    if not name.startswith("SIG"):
        name = "SIG" + name
    try:
        return int(signal.Signals[name])
    except KeyError:
        raise ValueError(f"unknown signal name '{value}'") from None


def _convert(name: str, value: str, converter: Callable[[str], T]) -> T:
    try:
        return converter(value)
    except ValueError as e:
        raise ConfigError(f'Environment variable "{name}" has invalid value "{value}": {e}') from e


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise ValueError("must not be negative")
    return number


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise ValueError("must be greater than zero")
    return number


def _output_mode(value: str) -> str:
    mode = value.lower()
    if mode not in default_settings.OUTPUT_MODES:
        raise ValueError(f"expected one of {', '.join(default_settings.OUTPUT_MODES)}")
    return mode


def _log_level(value: str) -> int:
    level = logging.getLevelName(value.upper())
    if not isinstance(level, int):
        raise ValueError("unknown logging level")
    return level


# Converter per key of settings.REQUIRED_SETTINGS.
_REQUIRED_CONVERTERS: Dict[str, Callable[[str], object]] = {
    "PROMURL": str,
    "METRIC": str,
    "METRICDELTA": int,
    "WARMUPDURATION": _non_negative_int,
    "CHECKDURATION": _non_negative_int,
    "FAILSIGNAL": parse_signal,
    "HANGSIGNAL": parse_signal,
}
