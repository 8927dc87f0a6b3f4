"""Unit tests for the forwarding channel and its receive loop."""

import io
import multiprocessing
import queue
import pytest
from unittest.mock import Mock
from cluster_log.channel import ChannelListener, QueueChannel
from cluster_log.events import Envelope, LogEvent, encode


def test_send_does_not_block_on_full_queue():
    """A full queue raises immediately instead of waiting."""
    channel = QueueChannel(queue.Queue(maxsize=1))
    channel.send("a")
    with pytest.raises(queue.Full):
        channel.send("b")


def test_listener_dispatches_in_arrival_order():
    """Envelopes reach dispatch in the order they were sent."""
    channel = QueueChannel(queue.Queue())
    seen = []
    listener = ChannelListener(channel, seen.append)
    for msg in ("E1", "E2", "E3"):
        channel.send(encode(Envelope.for_event(LogEvent("info", msg, 3))))

    listener.start()
    listener.stop(timeout=5)

    assert [e.payload["message"] for e in seen] == ["E1", "E2", "E3"]
    assert not listener.running


def test_listener_survives_malformed_input_and_dispatch_errors(monkeypatch):
    """Garbage and failing handlers are counted separately and reported once each."""
    diag = io.StringIO()
    monkeypatch.setattr("sys.__stderr__", diag)
    channel = QueueChannel(queue.Queue())
    dispatch = Mock(side_effect=[RuntimeError("handler bug"), RuntimeError("again"), None])
    listener = ChannelListener(channel, dispatch)
    channel.send("{not json")
    for msg in ("a", "b", "c"):
        channel.send(encode(Envelope("log", 1, {"level": "info", "message": msg})))

    listener.start()
    listener.stop(timeout=5)

    assert dispatch.call_count == 3
    assert listener.malformed == 1
    assert listener.dispatch_errors == 2
    assert diag.getvalue().count("receive loop got a malformed frame") == 1
    assert diag.getvalue().count("message handler failed") == 1


def test_listener_keeps_running_after_corrupt_frame(monkeypatch):
    """A torn frame on the pipe is dropped and later envelopes still arrive."""
    monkeypatch.setattr("sys.__stderr__", io.StringIO())
    q = multiprocessing.get_context().Queue()
    channel = QueueChannel(q)
    seen = []
    listener = ChannelListener(channel, seen.append)

    q._writer.send_bytes(b"not a pickle")
    channel.send(encode(Envelope.for_event(LogEvent("warn", "still here", 9))))
    listener.start()
    listener.stop(timeout=5)

    assert [e.payload["message"] for e in seen] == ["still here"]
    assert listener.malformed == 1
    assert not listener.running


def test_stop_without_start_is_harmless():
    """Stopping a listener that never ran does nothing."""
    ChannelListener(QueueChannel(queue.Queue()), Mock()).stop()
