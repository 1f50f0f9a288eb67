import logging
import typing

import mdnsd.advertiser
import mdnsd.interface_filter
import mdnsd.snapshot


logger = logging.getLogger(__name__)

DOMAIN_SUFFIX = ".local"


def canonical_hostname (name: str) -> str:

	"""Append ``.local`` to ``name`` unless it already ends with it (case-sensitive)."""

	if name.endswith(DOMAIN_SUFFIX):
		return name

	return f"{name}{DOMAIN_SUFFIX}"


class ServiceLifecycleManager:

	"""
	Owns the single live advertisement handle.

	The old handle is always stopped before a new one is started, so two
	responders are never bound to overlapping addresses at the same time.
	A failed start leaves no handle at all; nothing is retried here.
	"""

	def __init__ (self, advertiser: mdnsd.advertiser.Advertiser) -> None:

		self._advertiser = advertiser
		self._handle: typing.Optional[mdnsd.advertiser.ServiceHandle] = None
		self._shut_down = False

	@property
	def handle (self) -> typing.Optional[mdnsd.advertiser.ServiceHandle]:

		"""The live handle, or None when no service is running."""

		return self._handle

	@property
	def running (self) -> bool:

		return self._handle is not None

	async def start (
		self,
		name: str,
		interface_filter: mdnsd.interface_filter.InterfaceFilter,
		snapshot: mdnsd.snapshot.Snapshot
	) -> mdnsd.advertiser.ServiceHandle:

		"""Start a new advertisement for ``snapshot`` and return its handle.

		The handle is not stored. Any previous handle must already be released.

		Raises:
			AdvertisementError: The advertiser could not start.
		"""

		hostname = canonical_hostname(name)
		allowed = mdnsd.snapshot.selected_addresses(interface_filter, snapshot)
		visible = ", ".join(str(address) for address in snapshot.addresses)

		logger.info(f"Starting mdns responder: hostname={hostname}, interfaces={interface_filter.describe()}, visible_ips=[{visible}]")
		logger.debug(f"Responder allowed_ips={[str(address) for address in allowed]}")

		return await self._advertiser.start(hostname, allowed)

	async def stop (self, handle: mdnsd.advertiser.ServiceHandle) -> None:

		"""Release ``handle`` unconditionally."""

		await self._advertiser.stop(handle)

	async def ensure_running (
		self,
		name: str,
		interface_filter: mdnsd.interface_filter.InterfaceFilter,
		snapshot: mdnsd.snapshot.Snapshot
	) -> mdnsd.advertiser.ServiceHandle:

		"""Replace the held handle with one started for ``snapshot``.

		Raises:
			AdvertisementError: The new service could not start. No handle is
				held afterwards.
			RuntimeError: The manager has already been shut down.
		"""

		if self._shut_down:
			raise RuntimeError("lifecycle manager is shut down")

		previous = self._handle

		# Dropped only once released, so an interrupted stop is retried by shutdown().
		if previous is not None:
			await self.stop(previous)
			self._handle = None

		self._handle = await self.start(name, interface_filter, snapshot)

		return self._handle

	async def shutdown (self) -> None:

		"""Stop the held handle, if any. Later calls do nothing."""

		if self._shut_down:
			return

		self._shut_down = True

		handle = self._handle
		self._handle = None

		if handle is not None:
			await self.stop(handle)
			logger.info("mdns responder stopped")
