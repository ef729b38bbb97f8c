from __future__ import annotations

from typing import Any

import pytest

from pyformstate import FormConfigError
from pyformstate.state.events import ChannelBus, FormEvent, value_event


def test_channels_are_created_lazily() -> None:
    bus = ChannelBus()

    bus.emit("nobody:listens", 1)

    assert not bus.listening("nobody:listens")
    assert bus.channel(FormEvent.SUBMIT_BEFORE) is bus.channel("submit:before")


def test_channel_delivers_in_subscription_order() -> None:
    bus = ChannelBus()
    seen: list[tuple[str, Any]] = []
    bus.channel("x").subscribe(lambda payload: seen.append(("first", payload)))
    unsubscribe = bus.channel("x").subscribe(lambda payload: seen.append(("second", payload)))

    bus.emit("x", 1)
    unsubscribe()
    bus.emit("x", 2)

    assert seen == [("first", 1), ("second", 1), ("first", 2)]


def test_empty_channel_name_is_rejected() -> None:
    with pytest.raises(FormConfigError):
        ChannelBus().channel("")


def test_clear_all_drops_listeners() -> None:
    bus = ChannelBus()
    seen: list[Any] = []
    bus.channel(value_event("a")).subscribe(seen.append)

    bus.clear_all()
    bus.emit("value:a", 1)

    assert seen == []
    assert not bus.listening("value:a")
