"""Tests for the asyncio poller."""
import asyncio
import threading
from unittest.mock import Mock

import pytest

from pyflowgateway.exceptions import TransportError
from pyflowgateway.models import StatusSnapshot
from pyflowgateway.poller import Poller
from pyflowgateway.reconciler import StatusReconciler


@pytest.fixture
def snapshot(status_doc, data_doc):
    return StatusSnapshot.from_device(status_doc, data_doc)


async def wait_for(condition, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_poll_once_applies_snapshot(snapshot):
    reconciler = StatusReconciler()
    poller = Poller(Mock(return_value=snapshot), reconciler)
    assert await poller.poll_once() is True
    assert reconciler.state.ethernet.connected is True
    assert reconciler.state.sequence == 1
    await poller.close()


@pytest.mark.asyncio
async def test_poll_once_transport_error_keeps_state(snapshot):
    reconciler = StatusReconciler()
    fetch = Mock(side_effect=[snapshot, TransportError("HTTP 500")])
    poller = Poller(fetch, reconciler)
    await poller.poll_once()
    before = reconciler.state
    assert await poller.poll_once() is False
    assert reconciler.state is before
    assert reconciler.stats['failed'] == 1
    await poller.close()


@pytest.mark.asyncio
async def test_start_polls_immediately(snapshot):
    fetch = Mock(return_value=snapshot)
    poller = Poller(fetch, StatusReconciler(), interval=60)
    await poller.start()
    await wait_for(lambda: fetch.call_count == 1)
    assert poller.running is True
    await poller.close()
    assert poller.running is False
    assert fetch.call_count == 1


@pytest.mark.asyncio
async def test_polls_on_interval(snapshot):
    fetch = Mock(return_value=snapshot)
    poller = Poller(fetch, StatusReconciler(), interval=0.02)
    await poller.start()
    await wait_for(lambda: fetch.call_count >= 3)
    await poller.close()


@pytest.mark.asyncio
async def test_hidden_suspends_and_visible_polls_immediately(snapshot):
    fetch = Mock(return_value=snapshot)
    poller = Poller(fetch, StatusReconciler(), interval=60)
    await poller.start()
    await wait_for(lambda: fetch.call_count == 1)

    await poller.set_visible(False)
    assert poller.running is False
    # start is ignored while hidden
    await poller.start()
    assert poller.running is False

    await poller.set_visible(True)
    await wait_for(lambda: fetch.call_count == 2)
    assert poller.running is True
    await poller.close()


@pytest.mark.asyncio
async def test_tick_skipped_while_fetch_in_flight(snapshot):
    release = threading.Event()

    def slow_fetch():
        release.wait(2)
        return snapshot

    fetch = Mock(side_effect=slow_fetch)
    reconciler = StatusReconciler()
    poller = Poller(fetch, reconciler, interval=0.01)
    await poller.start()
    await wait_for(lambda: poller.stats['skipped'] >= 2)
    assert fetch.call_count == 1
    assert poller.in_flight is True

    release.set()
    await wait_for(lambda: reconciler.state.sequence == 1)
    await poller.close()


@pytest.mark.asyncio
async def test_manual_poll_skipped_while_in_flight(snapshot):
    release = threading.Event()

    def slow_fetch():
        release.wait(2)
        return snapshot

    poller = Poller(Mock(side_effect=slow_fetch), StatusReconciler())
    first = asyncio.create_task(poller.poll_once())
    await wait_for(lambda: poller.in_flight)
    assert await poller.poll_once() is False
    release.set()
    assert await first is True
    await poller.close()


@pytest.mark.asyncio
async def test_sequence_numbers_increase(snapshot):
    reconciler = StatusReconciler()
    poller = Poller(Mock(return_value=snapshot), reconciler)
    await poller.poll_once()
    await poller.poll_once()
    assert reconciler.state.sequence == 2
    assert reconciler.stats['stale'] == 0
    await poller.close()


@pytest.mark.asyncio
async def test_sequence_follows_updates_made_elsewhere(snapshot):
    reconciler = StatusReconciler()
    reconciler.apply(snapshot, sequence=10)
    poller = Poller(Mock(return_value=snapshot), reconciler)
    assert await poller.poll_once() is True
    assert reconciler.state.sequence == 11
    await poller.close()


@pytest.mark.asyncio
async def test_renderer_error_does_not_stop_polling(snapshot):
    on_render = Mock(side_effect=RuntimeError("render failed"))
    fetch = Mock(return_value=snapshot)
    poller = Poller(fetch, StatusReconciler(on_render), interval=0.02)
    await poller.start()
    await wait_for(lambda: fetch.call_count >= 2)
    assert poller.running is True
    assert poller.stats['errors'] >= 1
    await poller.close()


@pytest.mark.asyncio
async def test_update_during_in_flight_poll_gets_newer_sequence(snapshot, status_doc):
    release = threading.Event()

    def slow_fetch():
        release.wait(2)
        return snapshot

    reconciler = StatusReconciler()
    poller = Poller(Mock(side_effect=slow_fetch), reconciler)
    first = asyncio.create_task(poller.poll_once())
    await wait_for(lambda: poller.in_flight)

    # A direct update issued while the poll is pending
    sequence = reconciler.issue_sequence()
    assert sequence == 2
    status_doc['ethernet'] = {"connected": False}
    reconciler.apply(StatusSnapshot.from_device(status_doc), sequence)

    release.set()
    await first
    assert reconciler.state.ethernet.connected is False
    assert reconciler.state.sequence == 2
    assert reconciler.stats['stale'] == 1
    await poller.close()


@pytest.mark.asyncio
async def test_visible_again_polls_once_pending_fetch_lands(snapshot):
    release = threading.Event()

    def slow_fetch():
        release.wait(2)
        return snapshot

    fetch = Mock(side_effect=slow_fetch)
    poller = Poller(fetch, StatusReconciler(), interval=60)
    await poller.start()
    await wait_for(lambda: poller.in_flight)

    await poller.set_visible(False)
    await poller.set_visible(True)
    assert fetch.call_count == 1

    release.set()
    await wait_for(lambda: fetch.call_count == 2)
    assert poller.stats['skipped'] == 0
    await poller.close()


@pytest.mark.asyncio
async def test_start_after_close_is_refused(snapshot):
    poller = Poller(Mock(return_value=snapshot), StatusReconciler())
    await poller.close()
    with pytest.raises(RuntimeError):
        await poller.start()
    assert poller.running is False
