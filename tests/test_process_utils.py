"""Tests for starting the subprocess and delivering signals to it."""
import logging
import signal
import subprocess
import time
from unittest.mock import Mock

import psutil
import pytest

from metric_supervisor.errors import SignalDeliveryError, SpawnError
from metric_supervisor.supervisor.process_utils import SignalSink, launch_process
from metric_supervisor.supervisor.watcher import SignalKind


class TestLaunchProcess:

    def test_environment_overrides_reach_subprocess(self):
        process = launch_process(["sh", "-c", 'exit "$CHILD_CODE"'], {"CHILD_CODE": "3"}, "discard")
        assert process.wait(timeout=5) == 3

    def test_current_environment_is_inherited(self, monkeypatch):
        monkeypatch.setenv("SUPERVISOR_TEST_INHERITED", "yes")
        process = launch_process(["sh", "-c", 'test "$SUPERVISOR_TEST_INHERITED" = yes'], output_mode="discard")
        assert process.wait(timeout=5) == 0

    def test_log_mode_relays_output_through_logger(self, caplog):
        caplog.set_level(logging.INFO, logger="proc.child")
        process = launch_process(["sh", "-c", "echo hello; echo oops >&2"], output_mode="log")
        process.wait(timeout=5)

        deadline = time.monotonic() + 5
        while time.monotonic() < deadline:
            messages = {(r.levelno, r.getMessage()) for r in caplog.records if r.name == "proc.child"}
            if len(messages) == 2:
                break
            time.sleep(0.05)

        assert (logging.INFO, "hello") in messages
        assert (logging.ERROR, "oops") in messages

    def test_missing_executable_raises_spawn_error(self):
        with pytest.raises(SpawnError, match="Failed to start subprocess"):
            launch_process(["/nonexistent/definitely-not-here"])

    def test_empty_command_raises_spawn_error(self):
        with pytest.raises(SpawnError):
            launch_process([])


class TestSignalSink:

    def test_sends_mapped_signal(self):
        process = subprocess.Popen(["sh", "-c", "sleep 30"])
        try:
            sink = SignalSink(psutil.Process(process.pid), {SignalKind.FAIL: signal.SIGTERM, SignalKind.HANG: signal.SIGUSR1})
            sink.send(SignalKind.FAIL)
            assert process.wait(timeout=5) == -signal.SIGTERM
        finally:
            if process.poll() is None:
                process.kill()
                process.wait(timeout=5)

    def test_hang_uses_hang_signal(self):
        proc = Mock(pid=4242)
        sink = SignalSink(proc, {SignalKind.FAIL: 15, SignalKind.HANG: 10})
        sink.send(SignalKind.HANG)
        proc.send_signal.assert_called_once_with(10)

    def test_exited_process_raises_delivery_error(self):
        process = subprocess.Popen(["sh", "-c", "sleep 30"])
        proc = psutil.Process(process.pid)
        process.kill()
        process.wait(timeout=5)

        sink = SignalSink(proc, {SignalKind.FAIL: signal.SIGTERM, SignalKind.HANG: signal.SIGUSR1})
        with pytest.raises(SignalDeliveryError, match="no longer exists"):
            sink.send(SignalKind.HANG)

    def test_access_denied_raises_delivery_error(self):
        proc = Mock(pid=1)
        proc.send_signal.side_effect = psutil.AccessDenied(pid=1)
        sink = SignalSink(proc, {SignalKind.FAIL: 15, SignalKind.HANG: 10})
        with pytest.raises(SignalDeliveryError):
            sink.send(SignalKind.FAIL)
