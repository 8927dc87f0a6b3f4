"""Unit tests for supervisor wiring, with stand-in processes."""

import io
import threading
import time
from types import SimpleNamespace
from unittest.mock import Mock
from cluster_log import Config, LogContext, QueueChannel, Supervisor
from cluster_log.events import Envelope, LogEvent, encode
from cluster_log.role import WORKER_ID_ENV
from cluster_log.supervisor import _worker_main


class FakeProcess:
    """Stand-in for multiprocessing.Process that never forks."""

    next_pid = 7000

    def __init__(self, target=None, args=()):
        FakeProcess.next_pid += 1
        self.pid = None
        self.args = args
        self.exitcode = None
        self.join_timeouts = []

    def start(self):
        self.pid = FakeProcess.next_pid

    def join(self, timeout=None):
        self.join_timeouts.append(timeout)
        if timeout and self.exitcode is None:
            time.sleep(timeout)

    def kill(self):
        self.exitcode = -9


class EagerProcess(FakeProcess):
    """Logs its first line the moment it starts, before the parent returns."""

    def start(self):
        super().start()
        QueueChannel(self.args[0]).send(encode(Envelope.for_event(LogEvent("info", "first", self.pid))))
        # long enough for the listener to pick the line up if nothing holds it back
        time.sleep(0.3)
        self.exitcode = 0


def make_supervisor(process_cls):
    stream = io.StringIO()
    ctx = LogContext(Config(), environ={}).initialize(stream)
    sup = Supervisor(ctx)
    sup._mp = SimpleNamespace(Process=process_cls)
    return sup, stream


def test_label_applies_to_lines_sent_before_registration():
    """A labelled worker that logs immediately never shows its bare pid."""
    sup, stream = make_supervisor(EagerProcess)
    sup.listener.start()

    proc = sup.spawn(lambda ctx: None, label="indexer")
    sup.stop(timeout=5)

    assert "[INFO] - (indexer) first" in stream.getvalue()
    assert f"(#{proc.pid})" not in stream.getvalue()


def test_join_timeout_is_shared_by_all_workers():
    """join(timeout) waits about timeout in total, not once per worker."""
    sup, _ = make_supervisor(FakeProcess)
    procs = [sup.spawn(lambda ctx: None) for _ in range(3)]

    started = time.monotonic()
    assert sup.join(timeout=0.3) == []
    elapsed = time.monotonic() - started

    assert elapsed < 0.6
    assert sum(t for p in procs for t in p.join_timeouts) <= 0.3 + 1e-6
    for p in procs:
        sup.kill(p.pid)
    sup.stop(timeout=1)


def test_worker_main_abandons_stuck_feeder(monkeypatch):
    """A worker gives up on a queue nobody reads instead of hanging at exit."""
    monkeypatch.setenv(WORKER_ID_ENV, "0")
    release = threading.Event()
    q = Mock()
    q.join_thread.side_effect = release.wait
    target = Mock()

    started = time.monotonic()
    _worker_main(q, Config(), target, ("arg",), flush_timeout=0.1)
    release.set()

    assert time.monotonic() - started < 5
    q.close.assert_called_once_with()
    q.cancel_join_thread.assert_called_once_with()
    ctx, arg = target.call_args.args
    assert not ctx.is_primary
    assert arg == "arg"


def test_worker_main_keeps_queue_join_when_flush_completes(monkeypatch):
    """A drained queue is joined normally so no line is lost."""
    monkeypatch.setenv(WORKER_ID_ENV, "0")
    q = Mock()

    _worker_main(q, Config(), Mock(), (), flush_timeout=5)

    q.join_thread.assert_called_once_with()
    q.cancel_join_thread.assert_not_called()
