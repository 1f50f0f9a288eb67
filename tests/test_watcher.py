import asyncio
import logging
import typing

import pytest

import mdnsd.advertiser
import mdnsd.errors
import mdnsd.interface_filter
import mdnsd.interfaces
import mdnsd.lifecycle
import mdnsd.watcher

from conftest import FakeAdvertiser, FakeEnumerator, iface


InterfaceFilter = mdnsd.interface_filter.InterfaceFilter


def _watcher (
	advertiser: FakeAdvertiser,
	enumerator: FakeEnumerator,
	interface_filter: mdnsd.interface_filter.InterfaceFilter = InterfaceFilter.ALL,
	poll_interval: float = 3.0
) -> mdnsd.watcher.InterfaceWatcher:

	"""Build a watcher wired to the fakes."""

	return mdnsd.watcher.InterfaceWatcher(
		name = "printer",
		interface_filter = interface_filter,
		lifecycle = mdnsd.lifecycle.ServiceLifecycleManager(advertiser),
		poll_interval = poll_interval,
		enumerate_fn = enumerator
	)


@pytest.mark.asyncio
async def test_start_takes_snapshot_and_starts_service (advertiser: FakeAdvertiser, enumerator: FakeEnumerator) -> None:

	"""Startup snapshots the interfaces and starts one service."""

	watcher = _watcher(advertiser, enumerator)

	await watcher.start()

	assert watcher.state is mdnsd.watcher.WatcherState.RUNNING
	assert watcher.snapshot is not None
	assert watcher.snapshot.names == ["eth0", "wlan0"]
	assert advertiser.call_names() == ["start"]


@pytest.mark.asyncio
async def test_start_enumeration_failure_is_fatal (advertiser: FakeAdvertiser, enumerator: FakeEnumerator) -> None:

	"""Without an initial interface view the watcher cannot start."""

	enumerator.fail()
	watcher = _watcher(advertiser, enumerator)

	with pytest.raises(mdnsd.errors.EnumerationError):
		await watcher.start()

	assert advertiser.calls == []


@pytest.mark.asyncio
async def test_start_advertisement_failure_is_fatal (advertiser: FakeAdvertiser, enumerator: FakeEnumerator) -> None:

	"""A failing first start propagates."""

	advertiser.fail_next_start = True
	watcher = _watcher(advertiser, enumerator)

	with pytest.raises(mdnsd.errors.AdvertisementError):
		await watcher.start()


@pytest.mark.asyncio
async def test_start_with_missing_interface_warns_and_starts (advertiser: FakeAdvertiser, enumerator: FakeEnumerator, caplog: pytest.LogCaptureFixture) -> None:

	"""A filter naming an absent interface still starts, with warnings."""

	watcher = _watcher(advertiser, enumerator, InterfaceFilter.from_values(["usb0"]))

	with caplog.at_level(logging.WARNING, logger="mdnsd"):
		await watcher.start()

	assert "Requested interfaces not found: usb0" in caplog.text
	assert "No matching non-loopback interfaces at startup" in caplog.text
	assert advertiser.calls == [("start", ("printer.local", []))]


@pytest.mark.asyncio
async def test_unchanged_tick_does_nothing (advertiser: FakeAdvertiser, enumerator: FakeEnumerator) -> None:

	"""Identical consecutive snapshots trigger no stop/start."""

	watcher = _watcher(advertiser, enumerator)
	await watcher.start()

	# Same interfaces, different order.
	enumerator.interfaces.reverse()

	assert await watcher.tick() is False
	assert await watcher.tick() is False
	assert advertiser.call_names() == ["start"]


@pytest.mark.asyncio
async def test_enumeration_failure_keeps_snapshot (advertiser: FakeAdvertiser, enumerator: FakeEnumerator, caplog: pytest.LogCaptureFixture) -> None:

	"""A transient enumeration failure is logged and changes nothing."""

	watcher = _watcher(advertiser, enumerator)
	await watcher.start()
	held = watcher.snapshot

	enumerator.fail("netlink timeout")

	with caplog.at_level(logging.WARNING, logger="mdnsd"):
		assert await watcher.tick() is False

	assert watcher.snapshot is held
	assert advertiser.call_names() == ["start"]
	assert "Failed to refresh interface list: netlink timeout" in caplog.text


@pytest.mark.asyncio
async def test_change_restarts_service_once (advertiser: FakeAdvertiser, enumerator: FakeEnumerator) -> None:

	"""A changed snapshot causes exactly one stop followed by one start."""

	watcher = _watcher(advertiser, enumerator, InterfaceFilter.from_values(["eth0"]))
	await watcher.start()

	enumerator.interfaces = [iface("lo", "127.0.0.1", 1), iface("eth0", "10.0.0.77", 2)]

	assert await watcher.tick() is True

	assert advertiser.call_names() == ["start", "stop", "start"]
	assert advertiser.calls[-1] == ("start", ("printer.local", ["10.0.0.77"]))
	assert [str(address) for address in watcher.snapshot.addresses] == ["10.0.0.77"]
	assert watcher.lifecycle.handle is not None
	assert advertiser.max_live == 1


@pytest.mark.asyncio
async def test_failed_restart_holds_new_snapshot (advertiser: FakeAdvertiser, enumerator: FakeEnumerator, caplog: pytest.LogCaptureFixture) -> None:

	"""After a failed restart the same snapshot is not retried on the next tick."""

	watcher = _watcher(advertiser, enumerator)
	await watcher.start()

	enumerator.interfaces.append(iface("usb0", "172.16.0.2", 4))
	advertiser.fail_next_start = True

	with caplog.at_level(logging.ERROR, logger="mdnsd"):
		assert await watcher.tick() is True

	assert "Failed to restart mdns responder: address in use" in caplog.text
	assert "usb0" in watcher.snapshot.names
	assert watcher.lifecycle.handle is None
	assert watcher.state is mdnsd.watcher.WatcherState.RUNNING

	assert await watcher.tick() is False
	assert advertiser.call_names() == ["start", "stop", "start"]

	# The next real change tries again.
	enumerator.interfaces.pop()

	assert await watcher.tick() is True
	assert advertiser.call_names() == ["start", "stop", "start", "start"]
	assert watcher.lifecycle.handle is not None


@pytest.mark.asyncio
async def test_change_to_empty_warns (advertiser: FakeAdvertiser, enumerator: FakeEnumerator, caplog: pytest.LogCaptureFixture) -> None:

	"""Losing every matching interface is logged and the service still restarts."""

	watcher = _watcher(advertiser, enumerator, InterfaceFilter.from_values(["wlan0"]))
	await watcher.start()

	enumerator.interfaces = [iface("lo", "127.0.0.1", 1), iface("eth0", "10.0.0.5", 2)]

	with caplog.at_level(logging.WARNING, logger="mdnsd"):
		await watcher.tick()

	assert "No matching non-loopback interfaces" in caplog.text
	assert "Requested interfaces not found: wlan0" in caplog.text
	assert advertiser.call_names() == ["start", "stop", "start"]


@pytest.mark.asyncio
async def test_shutdown_stops_service_once (advertiser: FakeAdvertiser, enumerator: FakeEnumerator) -> None:

	"""Repeated shutdowns release the handle once."""

	watcher = _watcher(advertiser, enumerator)
	await watcher.start()

	await watcher.shutdown()
	await watcher.shutdown()

	assert advertiser.call_names() == ["start", "stop"]
	assert watcher.state is mdnsd.watcher.WatcherState.STOPPED


@pytest.mark.asyncio
async def test_run_ticks_until_stopped (advertiser: FakeAdvertiser, enumerator: FakeEnumerator) -> None:

	"""The loop polls on its interval and cleans up when the stop event fires."""

	watcher = _watcher(advertiser, enumerator, poll_interval=0.01)
	stop_event = asyncio.Event()

	task = asyncio.create_task(watcher.run(stop_event))

	await asyncio.sleep(0.1)
	enumerator.interfaces.append(iface("usb0", "172.16.0.2", 4))
	await asyncio.sleep(0.1)

	stop_event.set()
	await asyncio.wait_for(task, timeout=2.0)

	assert watcher.tick_count > 1
	assert watcher.restart_count == 1
	assert advertiser.call_names() == ["start", "stop", "start", "stop"]
	assert advertiser.live == []
	assert watcher.state is mdnsd.watcher.WatcherState.STOPPED


@pytest.mark.asyncio
async def test_run_cleans_up_on_cancel (advertiser: FakeAdvertiser, enumerator: FakeEnumerator) -> None:

	"""Cancelling the task still releases the service."""

	watcher = _watcher(advertiser, enumerator, poll_interval=10.0)

	task = asyncio.create_task(watcher.run(asyncio.Event()))
	await asyncio.sleep(0.05)

	task.cancel()

	with pytest.raises(asyncio.CancelledError):
		await task

	assert advertiser.call_names() == ["start", "stop"]
	assert watcher.state is mdnsd.watcher.WatcherState.STOPPED


@pytest.mark.asyncio
async def test_run_propagates_startup_failure (advertiser: FakeAdvertiser, enumerator: FakeEnumerator) -> None:

	"""A fatal startup error ends ``run`` after shutdown has run."""

	enumerator.fail()
	watcher = _watcher(advertiser, enumerator)

	with pytest.raises(mdnsd.errors.EnumerationError):
		await watcher.run(asyncio.Event())

	assert watcher.state is mdnsd.watcher.WatcherState.STOPPED
	assert advertiser.calls == []


def test_poll_interval_must_be_positive (advertiser: FakeAdvertiser, enumerator: FakeEnumerator) -> None:

	"""A zero interval is rejected."""

	with pytest.raises(ValueError):
		_watcher(advertiser, enumerator, poll_interval=0)


class SlowStartAdvertiser (FakeAdvertiser):

	"""Holds every start after the first until ``gate`` is set."""

	def __init__ (self, gate: asyncio.Event, entered: asyncio.Event) -> None:

		super().__init__()
		self.gate = gate
		self.entered = entered

	async def start (self, hostname: str, addresses: typing.Sequence[mdnsd.interfaces.IPAddress]) -> mdnsd.advertiser.ServiceHandle:

		if self.calls:
			self.entered.set()
			await self.gate.wait()

		return await super().start(hostname, addresses)


@pytest.mark.asyncio
async def test_stop_request_waits_for_restart_in_progress (enumerator: FakeEnumerator) -> None:

	"""A stop requested mid-restart is handled after the new service has started."""

	gate = asyncio.Event()
	entered = asyncio.Event()
	advertiser = SlowStartAdvertiser(gate, entered)
	watcher = _watcher(advertiser, enumerator, poll_interval=0.01)
	stop_event = asyncio.Event()

	task = asyncio.create_task(watcher.run(stop_event))
	await asyncio.sleep(0.05)

	enumerator.interfaces.append(iface("usb0", "172.16.0.2", 4))
	await asyncio.wait_for(entered.wait(), timeout=2.0)

	stop_event.set()
	await asyncio.sleep(0.05)

	assert advertiser.call_names() == ["start", "stop"]
	assert not task.done()

	gate.set()
	await asyncio.wait_for(task, timeout=2.0)

	assert advertiser.call_names() == ["start", "stop", "start", "stop"]
	assert advertiser.live == []
	assert watcher.state is mdnsd.watcher.WatcherState.STOPPED
