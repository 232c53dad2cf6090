"""Tests for the playback synchronizer and pulse windows."""

import asyncio
import threading

import pytest

from beatsync.config import SyncConfig
from beatsync.core.onset import Beat
from beatsync.errors import InvalidConfiguration
from beatsync.sync import (
    NEUTRAL_PULSE,
    ManualScheduler,
    PlaybackSynchronizer,
    PulseWindow,
    RealtimeScheduler,
    compute_pulse,
)
from beatsync.visualizers.modulator import VisualModulator


def at(scheduler, synchronizer, t):
    """Move the clock to ``t`` and feed the sample."""
    scheduler.advance_to(t)
    return synchronizer.update(t)


class TestManualScheduler:
    """Tests for the deterministic timer source."""

    def test_timers_fire_in_due_order(self, scheduler):
        fired = []
        scheduler.call_later(0.3, fired.append, "late")
        scheduler.call_later(0.1, fired.append, "early")

        scheduler.advance_to(0.2)
        assert fired == ["early"]

        scheduler.advance_to(0.5)
        assert fired == ["early", "late"]
        assert scheduler.time() == 0.5

    def test_cancelled_timer_does_not_fire(self, scheduler):
        fired = []
        handle = scheduler.call_later(0.1, fired.append, "x")
        handle.cancel()

        scheduler.advance(1.0)

        assert fired == []
        assert scheduler.pending == 0

    def test_clock_at_due_time_during_callback(self, scheduler):
        seen = []
        scheduler.call_later(0.25, lambda: seen.append(scheduler.time()))

        scheduler.advance_to(1.0)

        assert seen == [0.25]

    def test_clock_never_moves_backwards(self, scheduler):
        scheduler.advance_to(2.0)
        scheduler.advance_to(1.0)
        assert scheduler.time() == 2.0


class TestPulseWindow:
    """Tests for the trigger / expire primitive."""

    def test_trigger_and_expire(self, scheduler):
        expired = []
        window = PulseWindow(0, 0.5, scheduler, on_expire=lambda: expired.append(True))

        window.trigger(7)
        assert window.value == 7
        assert window.active
        assert window.expires_at == 0.5

        scheduler.advance_to(0.6)
        assert window.value == 0
        assert not window.active
        assert expired == [True]

    def test_retrigger_restarts_window(self, scheduler):
        window = PulseWindow(0, 0.5, scheduler)

        window.trigger(1)
        scheduler.advance_to(0.4)
        window.trigger(2)
        scheduler.advance_to(0.6)

        assert window.value == 2
        assert scheduler.pending == 1

        scheduler.advance_to(1.0)
        assert window.value == 0

    def test_cancel_does_not_notify(self, scheduler):
        expired = []
        window = PulseWindow(0, 0.5, scheduler, on_expire=lambda: expired.append(True))

        window.trigger(1)
        window.cancel()
        scheduler.advance_to(1.0)

        assert window.value == 0
        assert expired == []


class TestComputePulse:
    """Tests for the pulse formulas."""

    def test_default_intensity(self):
        params = compute_pulse(Beat(1.0, 0.5, 0.25), 60)

        assert params.pulse_scale == pytest.approx(1.015)
        assert params.shadow_opacity == pytest.approx(0.21)
        assert params.speed_multiplier == pytest.approx(1.9)
        assert params.transient_scale == pytest.approx(1.12)

    def test_zero_intensity_is_neutral(self):
        params = compute_pulse(Beat(1.0, 1.0, 1.0), 0)

        assert params.pulse_scale == 1.0
        assert params.shadow_opacity == 0.0
        assert params.speed_multiplier == 1.0
        assert params.transient_scale == 1.0

    def test_fifty_is_unit_factor(self):
        params = compute_pulse(Beat(1.0, 1.0, 1.0), 50)

        assert params.speed_multiplier == pytest.approx(2.5)
        assert params.transient_scale == pytest.approx(1.4)

    def test_maximum_intensity(self):
        params = compute_pulse(Beat(1.0, 1.0, 1.0), 100)

        assert params.pulse_scale == pytest.approx(1.05)
        assert params.shadow_opacity == pytest.approx(0.7)
        assert params.speed_multiplier == pytest.approx(4.0)
        assert params.transient_scale == pytest.approx(1.8)


class TestPlaybackSynchronizer:
    """Tests for edge-triggered pulses."""

    @pytest.fixture
    def synchronizer(self, scheduler, beats):
        return PlaybackSynchronizer(beats=beats, scheduler=scheduler)

    def test_fires_once_per_beat(self, scheduler, synchronizer):
        events = [at(scheduler, synchronizer, t) for t in (0.95, 0.97, 1.00, 1.02)]

        assert events[0] is not None
        assert events[0].beat.timestamp == 1.0
        assert events[1:] == [None, None, None]

    def test_no_pulse_outside_tolerance(self, scheduler, synchronizer):
        assert at(scheduler, synchronizer, 0.5) is None
        assert at(scheduler, synchronizer, 1.5) is None
        assert synchronizer.parameters == NEUTRAL_PULSE

    def test_each_beat_fires(self, scheduler, synchronizer):
        fired = []
        t = 0.0
        while t < 4.0:
            event = at(scheduler, synchronizer, t)
            if event is not None:
                fired.append(event.beat.timestamp)
            t = round(t + 0.25, 2)

        assert fired == [1.0, 2.0, 3.0]

    def test_seek_backwards_refires(self, scheduler, synchronizer):
        assert at(scheduler, synchronizer, 0.95) is not None
        assert at(scheduler, synchronizer, 1.5) is None

        # Seek to the start; the clock itself keeps running forward
        scheduler.advance(0.1)
        assert synchronizer.update(0.0) is None
        scheduler.advance(0.1)
        assert synchronizer.update(0.95) is not None

    def test_small_backward_jitter_is_not_a_seek(self, scheduler, synchronizer):
        assert at(scheduler, synchronizer, 1.02) is not None
        assert at(scheduler, synchronizer, 0.98) is None

    def test_earliest_beat_wins_when_windows_overlap(self, scheduler):
        close = (Beat(1.0, 0.5, 0.5), Beat(1.15, 0.9, 0.9))
        synchronizer = PlaybackSynchronizer(beats=close, scheduler=scheduler)

        assert synchronizer.active_beat_at(1.08).timestamp == 1.0

        first = at(scheduler, synchronizer, 1.08)
        second = at(scheduler, synchronizer, 1.12)

        assert first.beat.timestamp == 1.0
        assert second.beat.timestamp == 1.15

    def test_beats_sorted_on_input(self, scheduler, beats):
        synchronizer = PlaybackSynchronizer(beats=tuple(reversed(beats)), scheduler=scheduler)
        assert [b.timestamp for b in synchronizer.beats] == [1.0, 2.0, 3.0]

    def test_pulse_expires_after_window(self, scheduler, synchronizer):
        event = at(scheduler, synchronizer, 0.95)

        assert synchronizer.parameters == event.parameters
        assert synchronizer.state.active_beat == event.beat
        assert synchronizer.state.expires_at == pytest.approx(1.35)

        scheduler.advance_to(1.3)
        assert synchronizer.parameters == event.parameters

        scheduler.advance_to(1.4)
        assert synchronizer.parameters == NEUTRAL_PULSE
        assert synchronizer.state.active_beat is None
        assert synchronizer.state.expires_at is None

    def test_expiry_without_further_samples(self, scheduler, synchronizer):
        at(scheduler, synchronizer, 1.0)

        # No update() calls, only the clock moves
        scheduler.advance(5.0)

        assert synchronizer.parameters == NEUTRAL_PULSE

    def test_new_beat_restarts_window(self, scheduler):
        close = (Beat(1.0, 0.5, 0.5), Beat(1.2, 0.9, 0.9))
        synchronizer = PlaybackSynchronizer(beats=close, scheduler=scheduler)

        at(scheduler, synchronizer, 0.95)
        second = at(scheduler, synchronizer, 1.15)

        assert second is not None
        assert scheduler.pending == 1

        # The first beat's timer would have fired at 1.35
        scheduler.advance_to(1.4)
        assert synchronizer.parameters == second.parameters

        scheduler.advance_to(1.6)
        assert synchronizer.parameters == NEUTRAL_PULSE

    def test_last_pulsed_recorded(self, scheduler, synchronizer):
        at(scheduler, synchronizer, 1.0)
        scheduler.advance(1.0)

        assert synchronizer.state.last_pulsed_timestamp == 1.0

    def test_set_beats_forgets_pulses(self, scheduler, synchronizer, beats):
        at(scheduler, synchronizer, 1.0)
        synchronizer.set_beats(beats)

        assert at(scheduler, synchronizer, 1.01) is not None

    def test_sync_intensity_scales_parameters(self, scheduler, beats):
        synchronizer = PlaybackSynchronizer(beats=beats, sync_intensity=0, scheduler=scheduler)

        event = at(scheduler, synchronizer, 1.0)

        assert event.parameters.pulse_scale == 1.0
        assert event.parameters.speed_multiplier == 1.0

    def test_invalid_intensity(self, scheduler):
        with pytest.raises(InvalidConfiguration):
            PlaybackSynchronizer(sync_intensity=150, scheduler=scheduler)

        synchronizer = PlaybackSynchronizer(scheduler=scheduler)
        with pytest.raises(InvalidConfiguration):
            synchronizer.set_sync_intensity(-1)
        assert synchronizer.sync_intensity == 60

    def test_no_beats(self, scheduler):
        synchronizer = PlaybackSynchronizer(scheduler=scheduler)

        assert at(scheduler, synchronizer, 1.0) is None
        assert synchronizer.active_beat_at(1.0) is None


class TestListeners:
    """Tests for edge and expiry subscriptions."""

    def test_pulse_listener_sees_each_edge(self, scheduler, beats):
        synchronizer = PlaybackSynchronizer(beats=beats, scheduler=scheduler)
        seen = []
        synchronizer.add_pulse_listener(seen.append)

        returned = [at(scheduler, synchronizer, t) for t in (0.95, 1.0, 2.0)]

        assert seen == [returned[0], returned[2]]

    def test_expire_listener(self, scheduler, beats):
        synchronizer = PlaybackSynchronizer(beats=beats, scheduler=scheduler)
        expired = []
        synchronizer.add_expire_listener(lambda: expired.append(scheduler.time()))

        at(scheduler, synchronizer, 1.0)
        scheduler.advance(1.0)

        assert expired == [pytest.approx(1.4)]

    def test_cancelled_pulse_does_not_notify(self, scheduler, beats):
        synchronizer = PlaybackSynchronizer(beats=beats, scheduler=scheduler)
        expired = []
        synchronizer.add_expire_listener(lambda: expired.append(True))

        at(scheduler, synchronizer, 1.0)
        synchronizer.reset()
        scheduler.advance(1.0)

        assert expired == []


class TestDisabledSync:
    """Tests for the beat-sync toggle."""

    def test_disabled_never_fires(self, scheduler, beats):
        synchronizer = PlaybackSynchronizer(beats=beats, enabled=False, scheduler=scheduler)

        assert at(scheduler, synchronizer, 1.0) is None
        assert synchronizer.active_beat_at(1.0) is None
        assert synchronizer.parameters == NEUTRAL_PULSE

    def test_disabling_clears_running_pulse(self, scheduler, beats):
        synchronizer = PlaybackSynchronizer(beats=beats, scheduler=scheduler)
        at(scheduler, synchronizer, 1.0)

        synchronizer.set_enabled(False)

        assert synchronizer.parameters == NEUTRAL_PULSE
        assert scheduler.pending == 0

    def test_reenable(self, scheduler, beats):
        synchronizer = PlaybackSynchronizer(beats=beats, enabled=False, scheduler=scheduler)
        at(scheduler, synchronizer, 1.0)

        synchronizer.set_enabled(True)

        assert at(scheduler, synchronizer, 1.05) is not None


class TestRealtimeExpiry:
    """Pulse expiry with the default wall-clock scheduler."""

    @pytest.mark.asyncio
    async def test_loop_timer_reverts_pulse(self, beats):
        config = SyncConfig(pulse_duration=0.05)
        synchronizer = PlaybackSynchronizer(beats=beats, config=config)

        assert isinstance(synchronizer.scheduler, RealtimeScheduler)

        event = synchronizer.update(1.0)
        assert synchronizer.parameters == event.parameters

        await asyncio.sleep(0.15)

        assert synchronizer.parameters == NEUTRAL_PULSE

    def test_built_before_loop_starts(self, beats):
        """Objects created outside asyncio.run still expire inside it."""
        config = SyncConfig(pulse_duration=0.05)
        synchronizer = PlaybackSynchronizer(beats=beats, config=config)
        modulator = VisualModulator(style="Bars", config=config)

        async def play():
            event = synchronizer.update(1.0)
            modulator.on_pulse(event)
            assert synchronizer.parameters == event.parameters
            assert modulator.visual_scale > 1.0
            await asyncio.sleep(0.4)

        asyncio.run(play())

        assert synchronizer.parameters == NEUTRAL_PULSE
        assert modulator.visual_scale == 1.0

    def test_thread_timer_without_loop(self, beats):
        config = SyncConfig(pulse_duration=0.05)
        synchronizer = PlaybackSynchronizer(beats=beats, config=config)
        expired = threading.Event()
        synchronizer.add_expire_listener(expired.set)

        event = synchronizer.update(1.0)
        assert synchronizer.parameters == event.parameters

        assert expired.wait(timeout=2.0)
        assert synchronizer.parameters == NEUTRAL_PULSE

    def test_thread_timer_cancelled_on_reset(self, beats):
        config = SyncConfig(pulse_duration=0.05)
        synchronizer = PlaybackSynchronizer(beats=beats, config=config)
        expired = threading.Event()
        synchronizer.add_expire_listener(expired.set)

        synchronizer.update(1.0)
        synchronizer.reset()

        assert not expired.wait(timeout=0.2)
