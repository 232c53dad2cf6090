"""
Playback-clock synchronization.

Turns a stream of ``current_time`` samples into edge-triggered beat
pulses. Each pulse lasts a fixed window and reverts to a neutral
baseline through a timer scheduled at the rising edge, so expiry does
not depend on further time samples arriving.
"""

import asyncio
import bisect
import heapq
import itertools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol, Sequence

from beatsync.config import SyncConfig
from beatsync.core.onset import Beat
from beatsync.errors import InvalidConfiguration

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """
    Minimal timer interface.

    ``asyncio.AbstractEventLoop`` satisfies it directly. RealtimeScheduler
    is the live default; ManualScheduler is a deterministic stand-in for
    offline rendering.
    """

    def time(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class _ManualHandle:
    def __init__(self, when: float, callback: Callable[..., Any], args: tuple):
        self.when = when
        self._callback = callback
        self._args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def _run(self) -> None:
        self._callback(*self._args)


class ManualScheduler:
    """
    Scheduler whose clock only moves when told to.

    Timers fire in due order during :meth:`advance_to`, with the clock
    set to each timer's due time while its callback runs.
    """

    def __init__(self, start: float = 0.0):
        self._now = float(start)
        self._queue: list[tuple[float, int, _ManualHandle]] = []
        self._counter = itertools.count()

    def time(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _ManualHandle:
        handle = _ManualHandle(self._now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (handle.when, next(self._counter), handle))
        return handle

    def advance_to(self, when: float) -> None:
        while self._queue and self._queue[0][0] <= when:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, due)
            handle._run()
        self._now = max(self._now, when)

    def advance(self, seconds: float) -> None:
        self.advance_to(self._now + seconds)

    @property
    def pending(self) -> int:
        """Number of timers that are scheduled and not cancelled."""
        return sum(1 for _, _, h in self._queue if not h.cancelled)


class RealtimeScheduler:
    """
    Wall-clock timers resolved when each timer is scheduled.

    Uses the running event loop when there is one and a daemon
    ``threading.Timer`` otherwise, so objects built before the loop
    starts still expire their pulses.
    """

    def time(self) -> float:
        try:
            return asyncio.get_running_loop().time()
        except RuntimeError:
            return time.monotonic()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = threading.Timer(max(0.0, delay), callback, args)
            timer.daemon = True
            timer.start()
            return timer
        return loop.call_later(delay, callback, *args)


def default_scheduler() -> Scheduler:
    return RealtimeScheduler()


class PulseWindow:
    """
    A value that holds for a fixed duration after each trigger.

    Re-triggering restarts the window. When the window runs out the
    value returns to ``baseline`` and ``on_expire`` is called.
    """

    def __init__(
        self,
        baseline: Any,
        duration: float,
        scheduler: Scheduler,
        on_expire: Callable[[], None] | None = None,
    ):
        self.baseline = baseline
        self.duration = duration
        self.scheduler = scheduler
        self.on_expire = on_expire
        self.value = baseline
        self.expires_at: float | None = None
        self._handle: TimerHandle | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def trigger(self, value: Any) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self.value = value
        self.expires_at = self.scheduler.time() + self.duration
        self._handle = self.scheduler.call_later(self.duration, self._expire)

    def _expire(self) -> None:
        self._handle = None
        self.value = self.baseline
        self.expires_at = None
        if self.on_expire is not None:
            self.on_expire()

    def cancel(self) -> None:
        """Stop the timer and drop back to baseline without notifying."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self.value = self.baseline
        self.expires_at = None


@dataclass(frozen=True)
class PulseParameters:
    """Beat-derived animation parameters."""

    pulse_scale: float = 1.0  # General UI pulse
    shadow_opacity: float = 0.0
    speed_multiplier: float = 1.0  # Visualizer playback speed
    transient_scale: float = 1.0  # Visualizer bass punch


NEUTRAL_PULSE = PulseParameters()


def compute_pulse(beat: Beat, sync_intensity: float) -> PulseParameters:
    """
    Map a beat and the sync intensity (0-100) to pulse parameters.

    Visualizer factors use 50 as the 1x baseline.
    """
    strength = sync_intensity / 100.0
    factor = sync_intensity / 50.0
    return PulseParameters(
        pulse_scale=1 + strength * 0.05 * beat.intensity,
        shadow_opacity=strength * 0.7 * beat.intensity,
        speed_multiplier=max(0.1, 1 + beat.intensity * 1.5 * factor),
        transient_scale=1 + beat.bass_intensity * 0.4 * factor,
    )


@dataclass(frozen=True)
class PulseEvent:
    """Emitted once per rising edge."""

    beat: Beat
    time: float  # Playback time of the sample that fired the edge
    parameters: PulseParameters


@dataclass(frozen=True)
class PulseState:
    """Snapshot of the synchronizer's pulse state."""

    active_beat: Beat | None
    last_pulsed_timestamp: float | None
    expires_at: float | None
    parameters: PulseParameters


def _check_intensity(value: float) -> float:
    if not (0 <= value <= 100):
        raise InvalidConfiguration(f"sync_intensity must be within [0, 100], got {value!r}")
    return float(value)


class PlaybackSynchronizer:
    """
    Edge-triggered beat detection over a live playback clock.

    Polling repeatedly inside one beat's tolerance window fires that beat
    once. A backward jump larger than the tolerance is treated as a seek
    and allows beats to fire again.
    """

    def __init__(
        self,
        beats: Sequence[Beat] = (),
        sync_intensity: float = 60.0,
        enabled: bool = True,
        config: SyncConfig | None = None,
        scheduler: Scheduler | None = None,
    ):
        self.config = config or SyncConfig()
        self.config.validate()
        self.scheduler = scheduler or default_scheduler()
        self.sync_intensity = _check_intensity(sync_intensity)
        self.enabled = enabled

        self._beats: tuple[Beat, ...] = ()
        self._timestamps: list[float] = []
        self._last_pulsed: float | None = None
        self._last_sample: float | None = None
        self._pulse_listeners: list[Callable[[PulseEvent], None]] = []
        self._expire_listeners: list[Callable[[], None]] = []
        self._pulse = PulseWindow(
            baseline=None,
            duration=self.config.pulse_duration,
            scheduler=self.scheduler,
            on_expire=self._notify_expired,
        )
        self.set_beats(beats)

    @property
    def beats(self) -> tuple[Beat, ...]:
        return self._beats

    def set_beats(self, beats: Sequence[Beat]) -> None:
        """Replace the beat sequence and forget what has already pulsed."""
        self._beats = tuple(sorted(beats, key=lambda b: b.timestamp))
        self._timestamps = [b.timestamp for b in self._beats]
        self._last_pulsed = None

    def set_sync_intensity(self, value: float) -> None:
        self.sync_intensity = _check_intensity(value)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        if not enabled:
            self._pulse.cancel()

    def add_pulse_listener(self, callback: Callable[[PulseEvent], None]) -> None:
        """Call ``callback`` with every PulseEvent, right after the edge fires."""
        self._pulse_listeners.append(callback)

    def add_expire_listener(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` when the general pulse window runs out."""
        self._expire_listeners.append(callback)

    def _notify_expired(self) -> None:
        for callback in self._expire_listeners:
            callback()

    def reset(self) -> None:
        """Return to the initial state, cancelling any running pulse."""
        self._pulse.cancel()
        self._last_pulsed = None
        self._last_sample = None

    def active_beat_at(self, current_time: float) -> Beat | None:
        """
        The earliest beat within the tolerance window of ``current_time``.

        Always None while beat sync is disabled.
        """
        if not self.enabled or not self._timestamps:
            return None
        eps = self.config.tolerance
        start = bisect.bisect_left(self._timestamps, current_time - eps)
        for i in range(start, len(self._timestamps)):
            timestamp = self._timestamps[i]
            if timestamp - current_time >= eps:
                break
            if abs(current_time - timestamp) < eps:
                return self._beats[i]
        return None

    def update(self, current_time: float) -> PulseEvent | None:
        """
        Feed one playback time sample.

        Returns:
            A PulseEvent on a rising edge, otherwise None.
        """
        eps = self.config.tolerance
        if self._last_sample is not None and current_time < self._last_sample - eps:
            logger.debug("Seek detected (%.3f -> %.3f)", self._last_sample, current_time)
            self._last_pulsed = None
        self._last_sample = current_time

        beat = self.active_beat_at(current_time)
        if beat is None or beat.timestamp == self._last_pulsed:
            return None

        self._last_pulsed = beat.timestamp
        parameters = compute_pulse(beat, self.sync_intensity)
        self._pulse.trigger((beat, parameters))
        event = PulseEvent(beat=beat, time=current_time, parameters=parameters)
        for callback in self._pulse_listeners:
            callback(event)
        return event

    @property
    def parameters(self) -> PulseParameters:
        """Current general pulse parameters (neutral once the window expires)."""
        if self._pulse.value is None:
            return NEUTRAL_PULSE
        return self._pulse.value[1]

    @property
    def state(self) -> PulseState:
        active = self._pulse.value[0] if self._pulse.value is not None else None
        return PulseState(
            active_beat=active,
            last_pulsed_timestamp=self._last_pulsed,
            expires_at=self._pulse.expires_at,
            parameters=self.parameters,
        )
