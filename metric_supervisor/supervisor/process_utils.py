import os
import psutil
import logging
import threading
import subprocess
from typing import Any, Dict, List, Mapping, Optional

from metric_supervisor import settings
from metric_supervisor.errors import SignalDeliveryError, SpawnError
from metric_supervisor.supervisor.watcher import SignalKind

log = logging.getLogger(__name__)


#* --- Signal Delivery ---
class SignalSink:
    """Delivers the configured fail/hang signals to the supervised process."""

    def __init__(self, proc: psutil.Process, signals: Mapping[SignalKind, int]) -> None:
        """
        :param proc: Handle of the supervised process.
        :param signals: Signal number to send for each SignalKind.
        """
        self.proc = proc
        self.signals = dict(signals)

    def send(self, kind: SignalKind) -> None:
        """
        Sends the signal mapped to `kind`.

        :raises SignalDeliveryError: If the process is gone or the signal cannot be delivered.
        """
        signum = self.signals[kind]
        try:
            self.proc.send_signal(signum)
        except psutil.NoSuchProcess as e:
            raise SignalDeliveryError(f"process {self.proc.pid} no longer exists") from e
        except (psutil.Error, OSError) as e:
            raise SignalDeliveryError(f"could not send signal {signum} to PID {self.proc.pid}: {e}") from e


def get_process_from_pid(pid: int) -> psutil.Process:
    """A wrapper for psutil.Process for easy testing/mocking if needed."""
    return psutil.Process(pid)


#* --- Output Relay ---
def _read_pipe(pipe, process_name: str, level: int) -> None:
    """Target function for reader threads. Reads and logs lines from a subprocess pipe."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").rstrip()
            if not line:
                continue
            proc_logger.log(level, line)
    except (OSError, ValueError) as e:
        proc_logger.debug(f"Pipe reader for {process_name} stream exited: {e}")
    finally:
        pipe.close()


def log_process_output(process: subprocess.Popen, name: str) -> None:
    """Starts background threads to consume and log a process's stdout/stderr."""
    if process.stdout:
        threading.Thread(target=_read_pipe, args=(process.stdout, name, logging.INFO), daemon=True, name=f"{name}-stdout").start()
    if process.stderr:
        threading.Thread(target=_read_pipe, args=(process.stderr, name, logging.ERROR), daemon=True, name=f"{name}-stderr").start()


def _get_output_kwargs(output_mode: str) -> Dict[str, Any]:
    """Returns the Popen stdout/stderr arguments for an output mode."""
    if output_mode == "log":
        return {"stdout": subprocess.PIPE, "stderr": subprocess.PIPE}
    if output_mode == "discard":
        return {"stdout": subprocess.DEVNULL, "stderr": subprocess.DEVNULL}
    return {"stdout": None, "stderr": None}


#* --- Process Creation ---
def launch_process(
    command: List[str],
    env_overrides: Optional[Mapping[str, str]] = None,
    output_mode: str = settings.DEFAULT_OUTPUT_MODE,
) -> subprocess.Popen:
    """
    Starts the supervised process.

    The child inherits the current environment plus `env_overrides`. Its output
    goes to the supervisor's own stdout/stderr ('inherit'), through the
    `proc.child` logger ('log'), or nowhere ('discard').

    :param command: The executable followed by its arguments.
    :param env_overrides: Extra environment variables for the child.
    :param output_mode: One of settings.OUTPUT_MODES.
    :return: The Popen object of the started process.
    :raises SpawnError: If the process cannot be started.
    """
    if not command:
        raise SpawnError("No command given to start the subprocess.")

    env = dict(os.environ)
    if env_overrides:
        env.update(env_overrides)

    try:
        p = subprocess.Popen(command, env=env, stdin=None, **_get_output_kwargs(output_mode))
    except (OSError, ValueError) as e:
        raise SpawnError(f"Failed to start subprocess {command[0]!r}: {e}") from e

    if output_mode == "log":
        log_process_output(p, settings.CHILD_LOGGER_NAME)
    log.info(f"Started subprocess with PID: {p.pid}")
    return p
