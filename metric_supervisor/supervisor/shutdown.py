import queue
import signal
import psutil
import logging
import threading
import subprocess
from typing import Any, Dict, Iterable, NamedTuple, Optional

from metric_supervisor import settings

log = logging.getLogger(__name__)


class ChildExited(NamedTuple):
    """Event pushed onto the wait channel when the subprocess has terminated."""
    code: int


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"


def exit_code_from_returncode(returncode: int) -> int:
    """
    Maps a Popen returncode to a process exit code.

    Normal exits keep their status. A child killed by a signal (returncode -N)
    has no exit status of its own and maps to 0.
    """
    if returncode >= 0:
        return returncode
    log.warning(f"Subprocess was terminated by {_signal_name(-returncode)}, using exit code 0.")
    return 0


#* --- Signal Handling ---
def install_signal_handlers(channel: queue.SimpleQueue, signals: Iterable[int] = settings.OBSERVED_SIGNALS) -> Dict[int, Any]:
    """
    Routes the given signals onto `channel` instead of their default handling.
    Must be called from the main thread.

    :param channel: The queue consumed by `wait_for_exit`.
    :param signals: The signals to route.
    :return: The previous handlers, for `restore_signal_handlers`.
    """
    def _enqueue_signal(signum, frame):
        # SimpleQueue.put is reentrant, so this is safe while the main thread sits in get().
        channel.put(signum)

    previous = {}
    for sig in signals:
        previous[sig] = signal.signal(sig, _enqueue_signal)
    log.debug(f"Installed handlers for {', '.join(_signal_name(s) for s in previous)}.")
    return previous


def restore_signal_handlers(previous: Dict[int, Any]) -> None:
    """Re-installs the handlers returned by `install_signal_handlers`."""
    for sig, handler in previous.items():
        signal.signal(sig, handler if handler is not None else signal.SIG_DFL)


#* --- Termination ---
def kill_process(process: subprocess.Popen, proc: Optional[psutil.Process] = None) -> None:
    """
    Forcefully kills the subprocess. An already exited process is not an error,
    and a failed kill is logged rather than raised.

    :param process: The Popen object of the subprocess.
    :param proc: A psutil handle taken at spawn time, used to guard against PID reuse.
    """
    try:
        target = proc if proc is not None else psutil.Process(process.pid)
        target.kill()
        log.warning(f"Killed subprocess (PID {process.pid}).")
    except psutil.NoSuchProcess:
        log.info(f"Subprocess (PID {process.pid}) already exited, nothing to kill.")
    except psutil.Error as e:
        log.error(f"Failed to kill subprocess: {e}")


def _wait_child(process: subprocess.Popen, channel: queue.SimpleQueue) -> None:
    """Target function for the exit waiter thread."""
    try:
        returncode = process.wait()
    except OSError as e:
        log.error(f"Waiting for subprocess failed, assuming exit code 0: {e}")
        channel.put(ChildExited(0))
        return
    channel.put(ChildExited(exit_code_from_returncode(returncode)))


def wait_for_exit(process: subprocess.Popen, channel: queue.SimpleQueue, proc: Optional[psutil.Process] = None) -> int:
    """
    Waits until the subprocess is finished and returns its exit code.

    The wait can be interrupted by a termination-class signal (SIGTERM, SIGQUIT)
    arriving on `channel`; the subprocess is then killed and 0 is returned. Any
    other signal on the channel is logged and ignored.

    :param process: The Popen object of the subprocess.
    :param channel: The queue fed by the installed signal handlers.
    :param proc: Optional psutil handle of the subprocess, used for killing.
    :return: The exit code the supervisor should exit with.
    """
    threading.Thread(target=_wait_child, args=(process, channel), daemon=True, name="ExitWaiterThread").start()

    while True:
        event = channel.get()
        if isinstance(event, ChildExited):
            log.info(f"Subprocess exited with code {event.code}.")
            return event.code

        name = _signal_name(event)
        if event not in settings.TERMINATION_SIGNALS:
            log.info(f"Received {name}, ignoring.")
            continue

        log.warning(f"Received {name}, shutting down subprocess.")
        kill_process(process, proc)
        return 0
