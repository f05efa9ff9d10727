"""
Metric-driven liveness checks for the supervised process.

The watcher samples one counter on a fixed cadence and escalates signals when
the counter stops advancing:

    start -> warmup -> progress -> progress -> stall -> hang -> warmup -> progress -> ...
    start -> warmup -> progress -> stall -> hang -> warmup -> stall -> fail -> warmup -> ...
    start -> warmup -> stall -> fail -> warmup -> ...
"""
import enum
import logging
import threading
from typing import Callable

from metric_supervisor.errors import MetricError, SignalDeliveryError

log = logging.getLogger(__name__)


class SignalKind(enum.Enum):
    """Logical signals the watcher can ask the signal sink to deliver."""
    FAIL = "fail"
    HANG = "hang"


class WatchState(enum.Enum):
    """Health of the subprocess as judged from the last two samples."""
    PROGRESSING = "progressing"
    STALLED_ONCE = "stalled_once"
    STALLED_REPEATED = "stalled_repeated"


def _dispatch(send_signal: Callable[[SignalKind], None], kind: SignalKind) -> None:
    """Sends a signal through the sink, logging delivery failures."""
    try:
        send_signal(kind)
        log.info(f"Sent {kind.value} signal to subprocess.")
    except SignalDeliveryError as e:
        log.error(f"Failed to send {kind.value} signal: {e}")


def watch_metrics(
    get_metric: Callable[[], int],
    send_signal: Callable[[SignalKind], None],
    required_delta: int,
    tick_sleep: Callable[[], bool],
    warmup_sleep: Callable[[], bool],
) -> None:
    """
    Fetches the metric forever and ensures it advances by at least `required_delta`
    between two samples.

    A stall right after progress sends the hang signal. A stall when the previous
    interval had no progress either (including the first measured interval) sends
    the fail signal. Both are followed by a warm-up length pause; progress is
    followed by the short check pause. Failed fetches leave the state untouched
    and are retried after the check pause.

    :param get_metric: Returns the current counter value, raises MetricError on failure.
    :param send_signal: Delivers a SignalKind to the child, raises SignalDeliveryError on failure.
    :param required_delta: Minimum increase between two samples that counts as progress.
    :param tick_sleep: Waits the check interval. Returns False if the watcher should stop.
    :param warmup_sleep: Waits the warm-up interval. Returns False if the watcher should stop.
    """
    try:
        previous = get_metric()
    except MetricError as e:
        log.warning(f"Initial metric fetch failed, starting from 0: {e}")
        previous = 0
    previous_progressed = False

    if not warmup_sleep():
        return

    while True:
        try:
            current = get_metric()
        except MetricError as e:
            log.error(f"Failed to get metrics: {e}")
            if not tick_sleep():
                return
            continue

        delta = current - previous
        has_progressed = delta >= required_delta

        if has_progressed:
            state = WatchState.PROGRESSING
            log.debug(f"Metric advanced by {delta} ({previous} -> {current}).")
            pause = tick_sleep
        elif not previous_progressed:
            state = WatchState.STALLED_REPEATED
            log.warning(f"Engine not progressing: metric delta {delta} < {required_delta} again ({previous} -> {current}).")
            _dispatch(send_signal, SignalKind.FAIL)
            pause = warmup_sleep
        else:
            state = WatchState.STALLED_ONCE
            log.warning(f"Engine falling behind: metric delta {delta} < {required_delta} ({previous} -> {current}).")
            _dispatch(send_signal, SignalKind.HANG)
            pause = warmup_sleep

        log.debug(f"Watch state: {state.value}")
        previous = current
        previous_progressed = has_progressed

        if not pause():
            return


def start_watcher(
    get_metric: Callable[[], int],
    send_signal: Callable[[SignalKind], None],
    required_delta: int,
    check_seconds: float,
    warmup_seconds: float,
    stop_event: threading.Event,
) -> threading.Thread:
    """
    Starts `watch_metrics` in a daemon thread. Both pauses wait on `stop_event`,
    so setting it makes the watcher return at its next pause.

    :return: The started thread.
    """
    watcher_thread = threading.Thread(
        target=watch_metrics,
        args=(
            get_metric,
            send_signal,
            required_delta,
            lambda: not stop_event.wait(check_seconds),
            lambda: not stop_event.wait(warmup_seconds),
        ),
        daemon=True,
        name="MetricWatcherThread",
    )
    watcher_thread.start()
    log.info(
        f"Metric watcher started (warm-up {warmup_seconds}s, check every {check_seconds}s, "
        f"required delta {required_delta})."
    )
    return watcher_thread
