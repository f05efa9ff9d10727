"""Tests for the Prometheus exposition parser and client."""
from unittest.mock import Mock

import pytest
import requests

from metric_supervisor.errors import MetricError, MetricFetchError, MetricNotFoundError, MetricParseError
from metric_supervisor.metrics_client import PrometheusClient, extract_metric_value

EXPORTER_BODY = """
# HELP engine_http_prometheus_requests_total Total count of Prometheus requests received
# TYPE engine_http_prometheus_requests_total counter
engine_http_prometheus_requests_total 1
# HELP engine_last_block_height_processed Block height of the last message processed
# TYPE engine_last_block_height_processed gauge
engine_last_block_height_processed{version="1.3.1"}93273959
"""


class TestExtractMetricValue:

    def test_labelled_value_is_extracted(self):
        assert extract_metric_value(EXPORTER_BODY, "engine_last_block_height_processed") == 93273959

    def test_plain_value_is_extracted(self):
        assert extract_metric_value("foo 456\n", "foo") == 456

    def test_comment_lines_are_ignored(self):
        body = "# engine_last_block_height_processed 123\nengine_last_block_height_processed 456\n"
        assert extract_metric_value(body, "engine_last_block_height_processed") == 456

    def test_comment_only_match_is_not_found(self):
        with pytest.raises(MetricNotFoundError):
            extract_metric_value("# foo 123\n", "foo")

    def test_key_prefix_of_longer_name_does_not_match(self):
        body = "engine_last_block_height_processed 123\nengine_last_block_height 456\n"
        assert extract_metric_value(body, "engine_last_block_height") == 456

    def test_missing_key_raises_not_found(self):
        body = "engine_last_block_height_processed 123\nengine_last_block_height 456\n"
        with pytest.raises(MetricNotFoundError, match="could not find datapoint"):
            extract_metric_value(body, "foobar-not-found")

    def test_first_match_wins(self):
        assert extract_metric_value('foo{a="1"} 7\nfoo{a="2"} 9\n', "foo") == 7

    def test_labelled_line_without_value_is_skipped(self):
        assert extract_metric_value('foo{a="1"}\nfoo 3\n', "foo") == 3

    def test_negative_value(self):
        assert extract_metric_value("foo -12\n", "foo") == -12

    def test_non_integer_value_raises_parse_error(self):
        with pytest.raises(MetricParseError):
            extract_metric_value("foo 1.5e3\n", "foo")

    def test_value_outside_int64_raises_parse_error(self):
        with pytest.raises(MetricParseError):
            extract_metric_value(f"foo {2 ** 63}\n", "foo")

    def test_int64_max_is_accepted(self):
        assert extract_metric_value(f"foo {2 ** 63 - 1}\n", "foo") == 2 ** 63 - 1

    def test_parse_errors_are_metric_errors(self):
        with pytest.raises(MetricError):
            extract_metric_value("foo NaN\n", "foo")


class TestPrometheusClient:

    def _client(self, response=None, error=None):
        client = PrometheusClient("http://127.0.0.1:8041/metrics", "foo", timeout=2.5)
        client.session = Mock()
        if error is not None:
            client.session.get.side_effect = error
        else:
            client.session.get.return_value = response
        return client

    def test_get_returns_metric_value(self):
        response = Mock(text="foo 42\n")
        client = self._client(response=response)

        assert client.get() == 42
        client.session.get.assert_called_once_with("http://127.0.0.1:8041/metrics", timeout=2.5)
        response.raise_for_status.assert_called_once()

    def test_connection_error_raises_fetch_error(self):
        client = self._client(error=requests.exceptions.ConnectionError("refused"))
        with pytest.raises(MetricFetchError, match="refused"):
            client.get()

    def test_error_status_raises_fetch_error(self):
        response = Mock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("503 Server Error")
        client = self._client(response=response)
        with pytest.raises(MetricFetchError, match="503"):
            client.get()

    def test_missing_metric_raises_not_found(self):
        client = self._client(response=Mock(text="bar 1\n"))
        with pytest.raises(MetricNotFoundError):
            client.get()
