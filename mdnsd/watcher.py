"""Change detection loop that keeps the advertisement in step with the host.

The watcher takes a snapshot of the selected interfaces at startup, starts
the advertisement, then re-snapshots on a fixed interval. When a snapshot
differs from the held one the advertisement is restarted with the new
addresses. Ticks and shutdown run one at a time on the event loop, so the
held snapshot and handle never need a lock.

Failure policy
──────────────
- At startup, failing to enumerate interfaces or to start the advertisement
  is fatal and propagates to the caller.
- While running, enumeration failures are logged and the tick is skipped.
  A failed restart is logged and the watcher carries on with no service
  until the next real interface change.
"""

import asyncio
import enum
import logging
import signal
import typing

import mdnsd.errors
import mdnsd.interface_filter
import mdnsd.interfaces
import mdnsd.lifecycle
import mdnsd.snapshot


logger = logging.getLogger(__name__)

DEFAULT_POLL_SECONDS: float = 3.0


class WatcherState (enum.Enum):

	"""Lifecycle of an ``InterfaceWatcher``."""

	STARTING = "starting"
	RUNNING = "running"
	SHUTTING_DOWN = "shutting_down"
	STOPPED = "stopped"


class InterfaceWatcher:

	"""
	Polls the host's interfaces and restarts the advertisement on change.

	The watcher is the only code that replaces the held snapshot or asks the
	lifecycle manager to swap handles.
	"""

	def __init__ (
		self,
		name: str,
		interface_filter: mdnsd.interface_filter.InterfaceFilter,
		lifecycle: mdnsd.lifecycle.ServiceLifecycleManager,
		poll_interval: float = DEFAULT_POLL_SECONDS,
		enumerate_fn: mdnsd.interfaces.EnumerateFn = mdnsd.interfaces.enumerate_interfaces
	) -> None:

		"""Set up the watcher. Nothing is enumerated or started until ``start``.

		Parameters:
			name: Host name to advertise, with or without ``.local``.
			interface_filter: Which interfaces to watch.
			lifecycle: Owner of the advertisement handle.
			poll_interval: Seconds between ticks.
			enumerate_fn: Interface source, replaceable for tests.
		"""

		if poll_interval <= 0:
			raise ValueError("poll_interval must be positive")

		self.name = name
		self.interface_filter = interface_filter
		self.lifecycle = lifecycle
		self.poll_interval = poll_interval
		self._enumerate = enumerate_fn

		self.state = WatcherState.STARTING
		self.snapshot: typing.Optional[mdnsd.snapshot.Snapshot] = None
		self.tick_count = 0
		self.restart_count = 0

	def _warn_missing (self) -> None:

		"""Log requested interfaces that do not exist. Advisory only."""

		missing = mdnsd.snapshot.collect_missing(self.interface_filter, self._enumerate)

		if missing:
			logger.warning(f"Requested interfaces not found: {','.join(missing)}")

	async def start (self) -> None:

		"""Take the first snapshot and start the advertisement.

		Raises:
			EnumerationError: The interfaces could not be listed.
			AdvertisementError: The advertisement could not be started.
		"""

		if self.state is not WatcherState.STARTING:
			raise RuntimeError(f"watcher already started (state={self.state.value})")

		self._warn_missing()

		self.snapshot = mdnsd.snapshot.collect_snapshot(self.interface_filter, self._enumerate)

		if not self.snapshot:
			logger.warning("No matching non-loopback interfaces at startup")

		logger.debug(f"Initial interface snapshot={self.snapshot}")

		await self.lifecycle.ensure_running(self.name, self.interface_filter, self.snapshot)

		self.state = WatcherState.RUNNING

	async def tick (self) -> bool:

		"""Re-snapshot once and restart the advertisement if anything changed.

		Returns:
			True if a restart was attempted, whether or not it succeeded.
		"""

		self.tick_count += 1

		try:
			current = mdnsd.snapshot.collect_snapshot(self.interface_filter, self._enumerate)
		except mdnsd.errors.EnumerationError as exc:
			logger.warning(f"Failed to refresh interface list: {exc}")
			return False

		if current == self.snapshot:
			return False

		previous = self.snapshot if self.snapshot is not None else mdnsd.snapshot.Snapshot()

		logger.info("Network interface change detected, restarting mdns responder")
		logger.debug(f"Interface change: {mdnsd.snapshot.diff_snapshots(previous, current).describe()}")
		logger.debug(f"old_snapshot={previous}")
		logger.debug(f"new_snapshot={current}")

		# Held even if the restart fails, so an identical next tick does not retry.
		self.snapshot = current
		self.restart_count += 1

		if not current:
			logger.warning("No matching non-loopback interfaces")

		try:
			self._warn_missing()
		except mdnsd.errors.EnumerationError as exc:
			logger.debug(f"Could not check for missing interfaces: {exc}")

		try:
			await self.lifecycle.ensure_running(self.name, self.interface_filter, current)
		except mdnsd.errors.AdvertisementError as exc:
			logger.error(f"Failed to restart mdns responder: {exc}")
		else:
			logger.info("mdns responder restarted")

		return True

	async def run (self, stop_event: asyncio.Event) -> None:

		"""Start, then tick every ``poll_interval`` seconds until ``stop_event`` is set.

		Shutdown always runs, including when the task is cancelled. Startup
		errors propagate after shutdown has cleaned up.
		"""

		loop = asyncio.get_running_loop()
		stop_waiter = asyncio.ensure_future(stop_event.wait())

		try:

			await self.start()

			deadline = loop.time() + self.poll_interval

			while True:

				delay = max(0.0, deadline - loop.time())
				done, _ = await asyncio.wait({stop_waiter}, timeout=delay)

				if stop_waiter in done:
					logger.info("Stop requested, shutting down")
					break

				await self.tick()

				# A slow tick delays the schedule rather than bunching up ticks.
				deadline += self.poll_interval
				if deadline < loop.time():
					deadline = loop.time() + self.poll_interval

		finally:
			if not stop_waiter.done():
				stop_waiter.cancel()
			await self.shutdown()

	async def shutdown (self) -> None:

		"""Release the advertisement. Safe to call more than once."""

		if self.state in (WatcherState.SHUTTING_DOWN, WatcherState.STOPPED):
			return

		self.state = WatcherState.SHUTTING_DOWN

		try:
			await self.lifecycle.shutdown()
		finally:
			self.state = WatcherState.STOPPED


async def run_until_stopped (watcher: InterfaceWatcher) -> None:

	"""
	Run the watcher until SIGINT or SIGTERM is received.
	"""

	logger.info("Watching network interfaces. Press Ctrl+C to stop.")

	stop_event = asyncio.Event()
	loop = asyncio.get_running_loop()

	def _request_stop () -> None:

		"""
		Signal handler to request a clean shutdown.
		"""

		stop_event.set()

	for sig in (signal.SIGINT, signal.SIGTERM):
		loop.add_signal_handler(sig, _request_stop)

	try:
		await watcher.run(stop_event)
	finally:
		for sig in (signal.SIGINT, signal.SIGTERM):
			loop.remove_signal_handler(sig)
