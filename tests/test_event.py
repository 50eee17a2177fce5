"""Tests for emitters, disposables and cancellation tokens."""

import pytest

from inlay_client.editor import CancellationTokenSource
from inlay_client.event import Disposable, EventEmitter


def test_disposable_runs_callback_once():
    calls = []
    disposable = Disposable(lambda: calls.append(1))

    disposable.dispose()
    disposable.dispose()

    assert calls == [1]
    assert disposable.disposed


def test_combined_disposable_disposes_all():
    calls = []
    combined = Disposable.from_(Disposable(lambda: calls.append("a")), Disposable(lambda: calls.append("b")))

    combined.dispose()

    assert calls == ["a", "b"]


def test_emitter_delivers_until_unsubscribed():
    emitter = EventEmitter()
    seen = []

    subscription = emitter.event(seen.append)
    emitter.fire(1)
    subscription.dispose()
    emitter.fire(2)

    assert seen == [1]
    assert emitter.listener_count == 0


def test_failing_listener_does_not_stop_others():
    emitter = EventEmitter()
    seen = []

    def broken(_):
        raise RuntimeError("boom")

    emitter.event(broken)
    emitter.event(seen.append)
    emitter.fire("x")

    assert seen == ["x"]


def test_disposed_emitter_is_silent():
    emitter = EventEmitter()
    seen = []
    emitter.event(seen.append)

    emitter.dispose()
    emitter.fire(1)
    late = emitter.event(seen.append)
    emitter.fire(2)

    assert seen == []
    assert emitter.disposed
    late.dispose()


@pytest.mark.asyncio
async def test_cancellation_token_notifies_once():
    source = CancellationTokenSource()
    seen = []
    source.token.on_cancellation_requested(seen.append)

    source.cancel()
    source.cancel()
    await source.token.wait()

    assert source.token.is_cancellation_requested
    assert seen == [None]
