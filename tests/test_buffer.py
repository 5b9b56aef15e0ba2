"""Tests for the in-memory event buffer."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from conftest import make_envelope
from tracewire._ingestion import EventBuffer


class TestEventBuffer:
    """Size triggered flushing and the atomic drain."""

    def test_flush_at_batch_size(self):
        on_flush = MagicMock()
        buffer = EventBuffer(batch_size=3, on_flush=on_flush)

        envelopes = [make_envelope(f"t{i}") for i in range(3)]
        buffer.enqueue(envelopes[0])
        buffer.enqueue(envelopes[1])
        on_flush.assert_not_called()

        buffer.enqueue(envelopes[2])
        on_flush.assert_called_once_with(envelopes)
        assert len(buffer) == 0

    def test_batch_size_one_flushes_every_enqueue(self):
        on_flush = MagicMock()
        buffer = EventBuffer(batch_size=1, on_flush=on_flush)

        buffer.enqueue(make_envelope())
        buffer.enqueue(make_envelope())

        assert on_flush.call_count == 2
        assert all(len(call.args[0]) == 1 for call in on_flush.call_args_list)

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            EventBuffer(batch_size=0, on_flush=MagicMock())

    def test_flush_empty_is_noop(self):
        on_flush = MagicMock()
        buffer = EventBuffer(batch_size=10, on_flush=on_flush)

        assert buffer.flush() == 0
        on_flush.assert_not_called()

    def test_drain_detaches_pending(self):
        buffer = EventBuffer(batch_size=10, on_flush=MagicMock())
        first = make_envelope()
        buffer.enqueue(first)

        assert buffer.drain() == [first]
        assert buffer.drain() == []
        assert len(buffer) == 0

    def test_explicit_flush_propagates_errors(self):
        buffer = EventBuffer(batch_size=10, on_flush=MagicMock(side_effect=RuntimeError("boom")))
        buffer.enqueue(make_envelope())

        with pytest.raises(RuntimeError, match="boom"):
            buffer.flush()

    def test_threshold_flush_errors_do_not_reach_producer(self, caplog):
        buffer = EventBuffer(batch_size=1, on_flush=MagicMock(side_effect=RuntimeError("boom")))

        buffer.enqueue(make_envelope())

        assert "Flush triggered by batch size failed" in caplog.text

    def test_threshold_flush_errors_raised_when_requested(self):
        buffer = EventBuffer(
            batch_size=1,
            on_flush=MagicMock(side_effect=RuntimeError("boom")),
            raise_on_threshold_flush=True,
        )

        with pytest.raises(RuntimeError, match="boom"):
            buffer.enqueue(make_envelope())
        assert len(buffer) == 0

    def test_enqueue_after_close_flushes_immediately(self):
        on_flush = MagicMock()
        buffer = EventBuffer(batch_size=10, on_flush=on_flush)
        buffer.close()

        late = make_envelope("late")
        buffer.enqueue(late)

        on_flush.assert_called_once_with([late])
        assert len(buffer) == 0

    def test_concurrent_enqueues_then_one_drain(self):
        buffer = EventBuffer(batch_size=10_000, on_flush=MagicMock())

        def producer():
            for _ in range(100):
                buffer.enqueue(make_envelope())

        threads = [threading.Thread(target=producer) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        batch = buffer.drain()
        assert len(batch) == 800
        assert len({envelope.id for envelope in batch}) == 800

    def test_concurrent_enqueue_and_drain_lose_nothing(self):
        drained = []
        drained_lock = threading.Lock()

        def on_flush(batch):
            with drained_lock:
                drained.extend(batch)

        buffer = EventBuffer(batch_size=7, on_flush=on_flush)
        produced = []
        produced_lock = threading.Lock()

        def producer():
            for _ in range(200):
                envelope = make_envelope()
                with produced_lock:
                    produced.append(envelope.id)
                buffer.enqueue(envelope)

        def drainer():
            for _ in range(50):
                buffer.flush()

        threads = [threading.Thread(target=producer) for _ in range(4)]
        threads.append(threading.Thread(target=drainer))
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        buffer.flush()

        drained_ids = [envelope.id for envelope in drained]
        assert len(drained_ids) == len(set(drained_ids))
        assert sorted(drained_ids) == sorted(produced)


class TestFlushTimer:
    """Periodic flushing."""

    def test_timer_flushes_without_reaching_batch_size(self):
        flushed = threading.Event()
        buffer = EventBuffer(batch_size=100, on_flush=lambda batch: flushed.set(), flush_interval=0.05)
        buffer.enqueue(make_envelope())

        buffer.start_timer()
        try:
            assert flushed.wait(2.0)
        finally:
            buffer.stop_timer()
        assert not buffer.timer_running

    def test_timer_survives_flush_errors(self, caplog):
        calls = []
        recovered = threading.Event()

        def on_flush(batch):
            calls.append(batch)
            if len(calls) == 1:
                raise RuntimeError("transient")
            recovered.set()

        buffer = EventBuffer(batch_size=100, on_flush=on_flush, flush_interval=0.05)
        buffer.enqueue(make_envelope())
        buffer.start_timer()
        try:
            # Wait out the error back-off before adding the next envelope.
            deadline = time.monotonic() + 3.0
            while not calls and time.monotonic() < deadline:
                time.sleep(0.01)
            buffer.enqueue(make_envelope())
            assert recovered.wait(3.0)
        finally:
            buffer.stop_timer()

        assert "Periodic flush failed" in caplog.text
        assert len(calls) == 2

    def test_timer_disabled_without_interval(self):
        buffer = EventBuffer(batch_size=10, on_flush=MagicMock())
        buffer.start_timer()
        assert not buffer.timer_running

    def test_close_stops_timer_and_flushes(self):
        on_flush = MagicMock()
        buffer = EventBuffer(batch_size=10, on_flush=on_flush, flush_interval=3600)
        buffer.start_timer()
        envelope = make_envelope()
        buffer.enqueue(envelope)

        assert buffer.close() == 1
        on_flush.assert_called_once_with([envelope])
        assert buffer.shutdown_requested
        assert not buffer.timer_running
