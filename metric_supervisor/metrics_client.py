import logging
import requests
from metric_supervisor import settings
from metric_supervisor.errors import MetricFetchError, MetricNotFoundError, MetricParseError

log = logging.getLogger(__name__)

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class PrometheusClient:
    """Retrieves a single integer metric from a Prometheus text exporter."""

    def __init__(self, url: str, key: str, timeout: float = settings.DEFAULT_FETCH_TIMEOUT) -> None:
        """
        :param url: The full URL of the metrics endpoint (e.g. 'http://127.0.0.1:8041/metrics').
        :param key: The metric name to extract.
        :param timeout: Seconds before a request to the endpoint is abandoned.
        """
        self.url = url
        self.key = key
        self.timeout = timeout
        self.session = requests.Session()

    def get(self) -> int:
        """
        Fetches the metrics body and returns the current value of the metric.

        :return: The metric value.
        :raises MetricFetchError: If the endpoint is unreachable or answers with an error status.
        :raises MetricNotFoundError: If the body has no line for the metric.
        :raises MetricParseError: If the metric value is not an integer.
        """
        try:
            response = self.session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise MetricFetchError(f"Failed to fetch metrics from '{self.url}': {e}") from e
        return extract_metric_value(response.text, self.key)


def extract_metric_value(text: str, key: str) -> int:
    """
    Returns the integer value of `key` in a Prometheus exposition body.

    Comment lines (starting with '#') are skipped. A line matches if it starts
    with the key followed by a space, or by '{' for a labelled series, in which
    case the value is whatever follows the closing '}'. The first matching line
    wins.

    :param text: The exposition text.
    :param key: The metric name.
    :return: The parsed value.
    """
    key_and_space = f"{key} "
    key_and_labels = f"{key}{{"

    for line in text.splitlines():
        if line.startswith("#"):
            continue
        if not (line.startswith(key_and_space) or line.startswith(key_and_labels)):
            continue

        raw = line[len(key):].strip()
        if raw.startswith("{"):
            end = raw.rfind("}")
            if end < 0 or end == len(raw) - 1:
                continue  # labelled line without a value
            raw = raw[end + 1:].strip()

        value = _parse_int64(raw)
        log.debug(f"{key}: {value}")
        return value

    raise MetricNotFoundError(f"could not find datapoint '{key}' in metrics data")


def _parse_int64(raw: str) -> int:
    """Parses a base-10 signed 64-bit integer."""
    body = raw[1:] if raw[:1] in ("+", "-") else raw
    if not body.isdigit() or not body.isascii():
        raise MetricParseError(f"invalid metric value '{raw}'")
    value = int(raw)
    if not INT64_MIN <= value <= INT64_MAX:
        raise MetricParseError(f"metric value '{raw}' out of int64 range")
    return value
