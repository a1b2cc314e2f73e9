import socket

import pytest

from reactorhttp.dispatcher import (
    Channel,
    EpollDispatcher,
    Event,
    PollDispatcher,
    SelectDispatcher,
)

DISPATCHERS = [EpollDispatcher, PollDispatcher, SelectDispatcher]


class RecordingLoop:
    def __init__(self):
        self.thread_name = "mainthread"
        self.events = []

    def event_active(self, fd, event):
        self.events.append((fd, event))


@pytest.fixture
def pair():
    left, right = socket.socketpair()
    yield left, right
    left.close()
    right.close()


def test_channel_enable_write_toggles():
    channel = Channel(fd=3, events=Event.READ)
    channel.enable_write(True)
    assert channel.write_enabled
    assert channel.events == Event.READ | Event.WRITE
    channel.enable_write(False)
    assert not channel.write_enabled
    assert channel.events == Event.READ


@pytest.mark.parametrize("cls", DISPATCHERS)
def test_read_event_reported(cls, pair):
    left, right = pair
    loop = RecordingLoop()
    dispatcher = cls(loop)
    channel = Channel(fd=right.fileno(), events=Event.READ)
    dispatcher.add(channel)
    left.send(b"x")
    dispatcher.dispatch(1)
    assert loop.events == [(right.fileno(), Event.READ)]
    dispatcher.clear()


@pytest.mark.parametrize("cls", DISPATCHERS)
def test_write_event_reported(cls, pair):
    _, right = pair
    loop = RecordingLoop()
    dispatcher = cls(loop)
    dispatcher.add(Channel(fd=right.fileno(), events=Event.WRITE))
    dispatcher.dispatch(1)
    assert loop.events == [(right.fileno(), Event.WRITE)]
    dispatcher.clear()


@pytest.mark.parametrize("cls", DISPATCHERS)
def test_idle_dispatch_reports_nothing_until_data_arrives(cls, pair):
    left, right = pair
    loop = RecordingLoop()
    dispatcher = cls(loop)
    dispatcher.add(Channel(fd=right.fileno(), events=Event.READ))
    dispatcher.dispatch(0)
    assert loop.events == []
    left.send(b"x")
    dispatcher.dispatch(1)
    assert loop.events == [(right.fileno(), Event.READ)]
    dispatcher.clear()


@pytest.mark.parametrize("cls", DISPATCHERS)
def test_remove_runs_destroy_and_stops_watching(cls, pair):
    left, right = pair
    loop = RecordingLoop()
    destroyed = []
    dispatcher = cls(loop)
    channel = Channel(
        fd=right.fileno(),
        events=Event.READ,
        destroy_callback=lambda: destroyed.append(True),
    )
    dispatcher.add(channel)
    dispatcher.remove(channel)
    left.send(b"x")
    dispatcher.dispatch(0)
    assert destroyed == [True]
    assert loop.events == []
    dispatcher.clear()


@pytest.mark.parametrize("cls", DISPATCHERS)
def test_modify_switches_events(cls, pair):
    _, right = pair
    loop = RecordingLoop()
    dispatcher = cls(loop)
    channel = Channel(fd=right.fileno(), events=Event.READ)
    dispatcher.add(channel)
    dispatcher.dispatch(0)
    assert loop.events == []
    channel.events = Event.WRITE
    dispatcher.modify(channel)
    dispatcher.dispatch(1)
    assert loop.events == [(right.fileno(), Event.WRITE)]
    dispatcher.clear()


def test_select_rejects_large_descriptor():
    dispatcher = SelectDispatcher(RecordingLoop())
    with pytest.raises(ValueError):
        dispatcher.add(Channel(fd=SelectDispatcher.MAX_FD, events=Event.READ))


def test_select_reports_read_before_write_for_same_fd(pair):
    left, right = pair
    loop = RecordingLoop()
    dispatcher = SelectDispatcher(loop)
    dispatcher.add(Channel(fd=right.fileno(), events=Event.READ | Event.WRITE))
    left.send(b"x")
    dispatcher.dispatch(1)
    assert loop.events == [
        (right.fileno(), Event.READ),
        (right.fileno(), Event.WRITE),
    ]