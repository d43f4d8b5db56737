from __future__ import annotations

import logging

import pytest

from campaign_agent.runtime.notifier import ChatMessage, Notifier


def test_subscribers_receive_messages_in_emission_order() -> None:
    notifier = Notifier()
    first: list[ChatMessage] = []
    second: list[ChatMessage] = []
    notifier.subscribe(first.append)
    notifier.subscribe(second.append)

    notifier.notify("system", "one")
    notifier.notify("agent", "two")
    notifier.notify("user", "three")

    expected = [("system", "one"), ("agent", "two"), ("user", "three")]
    assert [(item.role, item.content) for item in first] == expected
    assert [(item.role, item.content) for item in second] == expected
    assert first[0].timestamp <= first[1].timestamp <= first[2].timestamp


def test_unsubscribe_stops_delivery() -> None:
    notifier = Notifier()
    received: list[ChatMessage] = []
    unsubscribe = notifier.subscribe(received.append)

    notifier.notify("system", "before")
    unsubscribe()
    unsubscribe()
    notifier.notify("system", "after")

    assert [item.content for item in received] == ["before"]


def test_failing_subscriber_does_not_block_others(caplog: pytest.LogCaptureFixture) -> None:
    notifier = Notifier()
    received: list[ChatMessage] = []

    def broken(_message: ChatMessage) -> None:
        raise RuntimeError("observer crashed")

    notifier.subscribe(broken)
    notifier.subscribe(received.append)

    with caplog.at_level(logging.ERROR, logger="campaign_agent.runtime.notifier"):
        message = notifier.notify("system", "still delivered")

    assert received == [message]
    assert "subscriber_failed" in caplog.text


def test_history_is_bounded_and_limited() -> None:
    notifier = Notifier(history_size=3)
    for index in range(5):
        notifier.notify("system", f"m{index}")

    assert [item.content for item in notifier.history()] == ["m2", "m3", "m4"]
    assert [item.content for item in notifier.history(2)] == ["m3", "m4"]
    assert notifier.history(0) == []
