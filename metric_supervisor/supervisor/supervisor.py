import queue
import psutil
import logging
import threading
import subprocess
from typing import List, Mapping, Optional

from metric_supervisor.config import SupervisorConfig
from metric_supervisor.errors import SignalDeliveryError
from metric_supervisor.metrics_client import PrometheusClient
from metric_supervisor.supervisor import process_utils, shutdown, watcher
from metric_supervisor.supervisor.watcher import SignalKind

log = logging.getLogger(__name__)


class Supervisor:
    """
    Runs a single subprocess, watches its progress metric and determines the
    exit code of the supervisor itself.
    """

    def __init__(self, config: SupervisorConfig, metrics_client: Optional[PrometheusClient] = None) -> None:
        """
        :param config: The validated supervisor configuration.
        :param metrics_client: Client used to read the progress metric. Built from the config if omitted.
        """
        self.config = config
        self.metrics_client = metrics_client or PrometheusClient(
            config.metrics_url, config.metric_name, timeout=config.fetch_timeout
        )
        self.process: Optional[subprocess.Popen] = None
        self.proc: Optional[psutil.Process] = None
        self.signal_sink: Optional[process_utils.SignalSink] = None
        self.watcher_thread: Optional[threading.Thread] = None
        self.channel: queue.SimpleQueue = queue.SimpleQueue()
        self.stop_event = threading.Event()

    def start(self, command: List[str], env_overrides: Optional[Mapping[str, str]] = None) -> subprocess.Popen:
        """
        Starts the subprocess and prepares the signal sink for it.

        :param command: The executable followed by its arguments.
        :param env_overrides: Extra environment variables for the subprocess.
        :raises SpawnError: If the subprocess cannot be started.
        """
        self.process = process_utils.launch_process(command, env_overrides, self.config.output_mode)
        try:
            self.proc = process_utils.get_process_from_pid(self.process.pid)
        except psutil.NoSuchProcess:
            # Exited before we could take a handle; signals will report it as gone.
            log.warning(f"Subprocess (PID {self.process.pid}) exited immediately after start.")
            self.proc = None

        self.signal_sink = process_utils.SignalSink(
            self.proc,
            {SignalKind.FAIL: self.config.fail_signal, SignalKind.HANG: self.config.hang_signal},
        ) if self.proc is not None else None
        return self.process

    def _send_signal(self, kind: SignalKind) -> None:
        if self.signal_sink is None:
            raise SignalDeliveryError("subprocess is not running")
        self.signal_sink.send(kind)

    def start_watcher(self) -> threading.Thread:
        """Launches the metric watcher in the background. It never feeds back into the exit code."""
        self.watcher_thread = watcher.start_watcher(
            get_metric=self.metrics_client.get,
            send_signal=self._send_signal,
            required_delta=self.config.metric_delta,
            check_seconds=self.config.check_seconds,
            warmup_seconds=self.config.warmup_seconds,
            stop_event=self.stop_event,
        )
        return self.watcher_thread

    def wait(self) -> int:
        """
        Blocks until the subprocess exits or a termination signal arrives.

        :return: The exit code for the supervisor.
        """
        if self.process is None:
            raise RuntimeError("Supervisor.wait() called before start().")
        return shutdown.wait_for_exit(self.process, self.channel, self.proc)

    def stop(self) -> None:
        """Asks the watcher to return at its next pause."""
        self.stop_event.set()

    def run(self, command: List[str], env_overrides: Optional[Mapping[str, str]] = None) -> int:
        """
        Supervises `command` until it exits or the supervisor is told to shut down.
        Must be called from the main thread.

        :param command: The executable followed by its arguments.
        :param env_overrides: Extra environment variables for the subprocess.
        :return: The exit code for the supervisor.
        :raises SpawnError: If the subprocess cannot be started.
        """
        previous_handlers = shutdown.install_signal_handlers(self.channel)
        try:
            self.start(command, env_overrides)
            self.start_watcher()
            return self.wait()
        finally:
            self.stop()
            shutdown.restore_signal_handlers(previous_handlers)
