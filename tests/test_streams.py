from __future__ import annotations

import asyncio

from calendar_assistant.agent.streams import CHANNEL_NAMES, StreamChannel, StreamChannelSet


def test_channel_updates_and_appends_until_done():
    channel = StreamChannel("text", "")
    assert channel.append("Hello")
    assert channel.append(", world")
    assert channel.value == "Hello, world"
    assert channel.done()
    assert channel.closed


def test_writes_after_done_are_ignored():
    channel = StreamChannel("status", "conversation.init")
    channel.done()
    assert channel.update("conversation.final") is False
    assert channel.append("x") is False
    assert channel.done() is False
    assert channel.value == "conversation.init"
    assert [event["op"] for event in channel.events] == ["update", "done"]


def test_failing_listener_is_dropped():
    channel = StreamChannel("gui")
    seen = []

    def broken(_event):
        raise RuntimeError("client went away")

    channel.listen(broken)
    channel.listen(seen.append)
    assert channel.update({"tool": "get_calendar"})
    assert channel.update({"tool": "delete_event"})
    assert [event["value"]["tool"] for event in seen] == ["get_calendar", "delete_event"]


def test_listen_replays_earlier_events():
    channel = StreamChannel("mutation_count", 0)
    channel.update(1)
    seen = []
    channel.listen(seen.append)
    assert [event["value"] for event in seen] == [0, 1]


def test_channel_set_initial_snapshot():
    streams = StreamChannelSet("thread-1")
    assert streams.snapshot() == {
        "status": "conversation.init",
        "text": "",
        "gui": None,
        "thread_id": "thread-1",
        "mutation_count": 0,
        "extracted_range": None,
    }
    assert [channel.name for channel in streams.channels] == list(CHANNEL_NAMES)


def test_close_completes_every_channel_once():
    streams = StreamChannelSet("thread-1")
    streams.close()
    streams.close()
    assert streams.closed
    for channel in streams.channels:
        assert [event["op"] for event in channel.events].count("done") == 1


def test_subscribe_merges_channels_and_replays():
    async def scenario():
        streams = StreamChannelSet("thread-1")
        streams.status.update("conversation.extract_range")
        queue = streams.subscribe()
        streams.text.append("hi")
        streams.close()
        events = []
        while not queue.empty():
            events.append(queue.get_nowait())
        return events

    events = asyncio.run(scenario())
    done = [event["channel"] for event in events if event["op"] == "done"]
    assert sorted(done) == sorted(CHANNEL_NAMES)
    assert {"channel": "status", "op": "update", "value": "conversation.extract_range"} in events
    assert {"channel": "text", "op": "append", "value": "hi"} in events


def test_unsubscribe_stops_delivery():
    async def scenario():
        streams = StreamChannelSet("thread-1")
        queue = streams.subscribe()
        while not queue.empty():
            queue.get_nowait()
        streams.unsubscribe(queue)
        streams.text.append("ignored")
        return queue.empty()

    assert asyncio.run(scenario())
