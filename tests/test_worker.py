"""Tests for the background delivery Worker."""

import threading
import time
from unittest.mock import patch

import pytest

from conftest import RecordingSender

from checkend.worker import Worker, WorkerState


@pytest.fixture
def async_config(config):
    config.async_mode = True
    return config


@pytest.fixture
def make_worker(async_config):
    workers = []

    def _make(sender=None, **overrides):
        for key, value in overrides.items():
            setattr(async_config, key, value)
        worker = Worker(async_config, sender if sender is not None else RecordingSender())
        workers.append(worker)
        return worker

    yield _make
    for w in workers:
        w.shutdown(timeout=1)


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestPush:
    def test_push_queues_and_sends(self, make_worker, make_notice):
        sender = RecordingSender()
        worker = make_worker(sender)
        assert worker.push(make_notice()) is True
        assert _wait_for(lambda: len(sender.notices) == 1)

    def test_push_returns_false_after_shutdown(self, make_worker, make_notice):
        worker = make_worker()
        worker.shutdown(timeout=1)
        assert worker.push(make_notice()) is False

    def test_push_returns_false_when_queue_full(self, make_worker, make_notice):
        worker = make_worker(RecordingSender(delay=0.2), max_queue_size=2)
        results = [worker.push(make_notice()) for _ in range(5)]
        assert False in results or worker.queue_size <= 2
        assert worker.queue_size <= 2

    def test_fifo_order(self, make_worker, make_notice):
        sender = RecordingSender()
        worker = make_worker(sender)
        for i in range(5):
            worker.push(make_notice(message=f"n{i}"))
        worker.flush(timeout=2)
        assert [n.message for n in sender.notices] == [f"n{i}" for i in range(5)]

    def test_concurrent_pushes_all_delivered(self, make_worker, make_notice):
        sender = RecordingSender()
        worker = make_worker(sender)

        def produce():
            for _ in range(20):
                worker.push(make_notice())

        threads = [threading.Thread(target=produce) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert worker.flush(timeout=2) is True
        assert len(sender.notices) == 100

    def test_bound_holds_under_concurrent_pushes(self, make_worker, make_notice):
        gate = threading.Event()

        class GatedSender(RecordingSender):
            def send_notice(self, notice):
                gate.wait(5)
                return super().send_notice(notice)

        worker = make_worker(GatedSender(), max_queue_size=2)
        try:
            # Park the thread on an in-flight notice so nothing is consumed
            worker.push(make_notice())
            assert _wait_for(lambda: worker.queue_size == 0)

            real_qsize = worker._queue.qsize

            def slow_qsize():
                time.sleep(0.01)
                return real_qsize()

            barrier = threading.Barrier(20)
            accepted = []

            def produce():
                barrier.wait()
                accepted.append(worker.push(make_notice()))

            with patch.object(worker._queue, "qsize", side_effect=slow_qsize):
                threads = [threading.Thread(target=produce) for _ in range(20)]
                for t in threads:
                    t.start()
                for t in threads:
                    t.join()

            assert accepted.count(True) == 2
            assert worker.queue_size == 2
        finally:
            gate.set()


class TestShutdown:
    def test_shutdown_drains_queue(self, make_worker, make_notice):
        sender = RecordingSender(delay=0.05)
        worker = make_worker(sender)
        for _ in range(3):
            worker.push(make_notice())
        worker.shutdown(timeout=2)
        assert len(sender.notices) == 3

    def test_shutdown_is_idempotent(self, make_worker):
        worker = make_worker()
        worker.shutdown(timeout=1)
        worker.shutdown(timeout=1)
        assert worker.state is WorkerState.STOPPED

    def test_state_transitions(self, make_worker):
        worker = make_worker()
        assert worker.state is WorkerState.RUNNING
        assert worker.is_running() is True
        worker.shutdown(timeout=1)
        assert worker.state is WorkerState.STOPPED
        assert worker.is_running() is False

    def test_shutdown_timeout_unblocks_caller(self, make_worker, make_notice):
        worker = make_worker(RecordingSender(delay=0.5))
        worker.push(make_notice())
        worker.push(make_notice())
        time.sleep(0.05)

        started = time.monotonic()
        worker.shutdown(timeout=0.1)
        assert time.monotonic() - started < 0.45
        assert worker.push(make_notice()) is False

    def test_drain_ignores_sender_errors(self, make_worker, make_notice):
        sender = RecordingSender(results=[RuntimeError("down"), {"id": 2}])
        worker = make_worker(sender)
        worker.shutdown(timeout=1)

        # Left behind after the thread exited
        worker._queue.put_nowait(make_notice())
        worker._queue.put_nowait(make_notice())
        worker._drain()

        assert len(sender.notices) == 2
        assert worker.queue_size == 0
        assert worker.throttle_level == 0


class TestFlush:
    def test_flush_waits_for_pending(self, make_worker, make_notice):
        sender = RecordingSender(delay=0.05)
        worker = make_worker(sender)
        for _ in range(3):
            worker.push(make_notice())
        assert worker.flush(timeout=2) is True
        assert len(sender.notices) == 3
        assert worker.is_running() is True

    def test_flush_on_stopped_worker_returns_immediately(self, make_worker):
        worker = make_worker()
        worker.shutdown(timeout=1)
        started = time.monotonic()
        assert worker.flush(timeout=5) is False
        assert time.monotonic() - started < 1

    def test_flush_times_out(self, make_worker, make_notice):
        worker = make_worker(RecordingSender(delay=0.5))
        worker.push(make_notice())
        assert worker.flush(timeout=0.05) is False


class TestThrottle:
    def test_initial_level_zero_no_delay(self, make_worker):
        worker = make_worker()
        assert worker.throttle_level == 0
        assert worker.throttle_delay() == 0

    def test_failures_raise_level_success_lowers_it(self, make_worker, make_notice):
        sender = RecordingSender(results=[None] * 5 + [{"id": 1}])
        worker = make_worker(sender)

        with patch("checkend.worker.time.sleep") as mock_sleep:
            for _ in range(5):
                worker._send_with_throttle(make_notice())
            assert worker.throttle_level == 5
            assert worker.throttle_delay() > 0
            assert mock_sleep.call_count == 4

            worker._send_with_throttle(make_notice())
            assert worker.throttle_level == 4
            mock_sleep.assert_called_with(round(1.05 ** 5 - 1, 3))

    def test_sender_exception_counts_as_failure(self, make_worker, make_notice):
        worker = make_worker(RecordingSender(results=[RuntimeError("boom")]))
        assert worker._send_with_throttle(make_notice()) is False
        assert worker.throttle_level == 1

    def test_level_capped_and_floored(self, make_worker, make_notice):
        worker = make_worker(RecordingSender(results=[None]))
        worker._throttle = 100
        with patch("checkend.worker.time.sleep"):
            worker._send_with_throttle(make_notice())
        assert worker.throttle_level == 100

        worker._throttle = 0
        worker._send_with_throttle(make_notice())
        assert worker.throttle_level == 0

    def test_delay_values(self, make_worker):
        worker = make_worker()
        worker._throttle = 1
        assert worker.throttle_delay() == 0.05
        worker._throttle = 100
        assert 130 < worker.throttle_delay() < 131


class TestCrash:
    def test_loop_crash_stops_worker(self, make_worker, make_notice):
        worker = make_worker()
        with patch.object(worker, "_send_with_throttle", side_effect=RuntimeError("bug")):
            worker.push(make_notice())
            assert _wait_for(lambda: worker.state is WorkerState.STOPPED)

        assert worker.is_running() is False
        assert worker.push(make_notice()) is False

    def test_crash_releases_pending_flush_markers(self, make_worker, make_notice):
        sender = RecordingSender()
        worker = make_worker(sender)
        gate = threading.Event()

        def explode(notice):
            gate.wait(2)
            raise RuntimeError("bug")

        with patch.object(worker, "_send_with_throttle", side_effect=explode):
            worker.push(make_notice())
            assert _wait_for(lambda: worker.queue_size == 0)
            marker = threading.Event()
            worker._queue.put_nowait(marker)
            worker.push(make_notice(message="left behind"))
            gate.set()

            assert marker.wait(1) is True
            assert _wait_for(lambda: worker.state is WorkerState.STOPPED)

        # Notices queued behind the crash are still delivered by shutdown
        worker.shutdown(timeout=1)
        assert [n.message for n in sender.notices] == ["left behind"]
