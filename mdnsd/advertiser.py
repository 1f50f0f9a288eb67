"""Multicast DNS advertisement of ``<name>.local``.

The watcher only talks to an ``Advertiser``: ``start`` returns a
``ServiceHandle`` and ``stop`` releases it. ``ZeroconfAdvertiser`` is the
production implementation. It registers a ``_workstation._tcp`` record whose
server name is the host name, so the responder answers A/AAAA queries for
``<name>.local`` on the chosen addresses.

Restriction contract
────────────────────
``start(hostname, addresses)`` with an empty ``addresses`` list means *no
restriction*: the responder binds every interface and publishes every
non-loopback address. A non-empty list binds and publishes exactly those
addresses.
"""

import dataclasses
import logging
import typing

import zeroconf
import zeroconf.asyncio

import mdnsd.errors
import mdnsd.interfaces


logger = logging.getLogger(__name__)

IPAddress = mdnsd.interfaces.IPAddress

DEFAULT_SERVICE_TYPE = "_workstation._tcp.local."

# The discard port, as used by other _workstation._tcp announcers.
DEFAULT_SERVICE_PORT = 9


@dataclasses.dataclass
class ServiceHandle:

	"""A running advertisement. Release it with ``Advertiser.stop``."""

	hostname: str
	addresses: typing.Tuple[IPAddress, ...]


class Advertiser (typing.Protocol):

	"""Starts and stops the advertisement service."""

	async def start (self, hostname: str, addresses: typing.Sequence[IPAddress]) -> ServiceHandle:

		"""Start advertising ``hostname``. Raises ``AdvertisementError`` on failure."""

		...

	async def stop (self, handle: ServiceHandle) -> None:

		"""Release ``handle``. Must not raise, even if the service is already broken."""

		...


@dataclasses.dataclass
class ZeroconfHandle (ServiceHandle):

	"""Handle for a registration on its own ``AsyncZeroconf`` instance."""

	responder: zeroconf.asyncio.AsyncZeroconf
	info: zeroconf.ServiceInfo


def _ip_version (addresses: typing.Sequence[IPAddress]) -> zeroconf.IPVersion:

	"""Pick the narrowest IP version that covers ``addresses``."""

	versions = {address.version for address in addresses}

	if versions == {4}:
		return zeroconf.IPVersion.V4Only

	if versions == {6}:
		return zeroconf.IPVersion.V6Only

	return zeroconf.IPVersion.All


class ZeroconfAdvertiser:

	"""Advertises the host name with python-zeroconf.

	Each ``start`` creates a fresh ``AsyncZeroconf`` bound to the requested
	interfaces, so a restart after an interface change never reuses sockets
	bound to addresses that have gone away.
	"""

	def __init__ (
		self,
		service_type: str = DEFAULT_SERVICE_TYPE,
		port: int = DEFAULT_SERVICE_PORT,
		enumerate_fn: mdnsd.interfaces.EnumerateFn = mdnsd.interfaces.enumerate_interfaces
	) -> None:

		"""Configure the record to register.

		Parameters:
			service_type: DNS-SD service type for the registration.
			port: Port published in the SRV record.
			enumerate_fn: Interface source used to find the addresses to
				publish when the start is unrestricted.
		"""

		self._service_type = service_type
		self._port = port
		self._enumerate = enumerate_fn

	def _unrestricted_addresses (self) -> typing.List[IPAddress]:

		"""All non-loopback addresses on the host."""

		try:
			interfaces = self._enumerate()
		except mdnsd.errors.EnumerationError as exc:
			raise mdnsd.errors.AdvertisementError(str(exc)) from exc

		addresses = {iface.address for iface in interfaces if not iface.is_loopback}

		return sorted(addresses, key=lambda address: (address.version, int(address)))

	async def start (self, hostname: str, addresses: typing.Sequence[IPAddress]) -> ServiceHandle:

		"""Register ``hostname`` on a new responder."""

		if addresses:
			interfaces: typing.Union[zeroconf.InterfaceChoice, typing.List[str]] = [str(address) for address in addresses]
			published = list(addresses)
		else:
			interfaces = zeroconf.InterfaceChoice.All
			published = self._unrestricted_addresses()

		label = hostname[:-len(".local")] if hostname.endswith(".local") else hostname

		# zeroconf raises RuntimeError when a requested address is on no adapter,
		# e.g. one that went away after the snapshot was taken.
		try:
			info = zeroconf.ServiceInfo(
				type_ = self._service_type,
				name = f"{label}.{self._service_type}",
				port = self._port,
				properties = {},
				server = f"{hostname}.",
				parsed_addresses = [str(address) for address in published]
			)
			aiozc = zeroconf.asyncio.AsyncZeroconf(interfaces=interfaces, ip_version=_ip_version(published))
		except (OSError, ValueError, RuntimeError, zeroconf.Error) as exc:
			raise mdnsd.errors.AdvertisementError(f"failed to open mdns sockets: {exc}") from exc

		try:
			await aiozc.async_register_service(info)
		except (OSError, ValueError, RuntimeError, zeroconf.Error) as exc:
			await aiozc.async_close()
			raise mdnsd.errors.AdvertisementError(f"failed to register {hostname}: {exc}") from exc

		logger.debug(f"Registered {info.name} on {interfaces}")

		return ZeroconfHandle(hostname=hostname, addresses=tuple(published), responder=aiozc, info=info)

	async def stop (self, handle: ServiceHandle) -> None:

		"""Unregister and close the responder behind ``handle``."""

		if not isinstance(handle, ZeroconfHandle):
			logger.warning(f"Ignoring stop for a handle this advertiser did not create: {handle!r}")
			return

		try:
			await handle.responder.async_unregister_service(handle.info)
		except Exception as exc:
			logger.warning(f"Error unregistering {handle.hostname}: {exc}")
		finally:
			# Sockets are released even if the unregister was cancelled.
			try:
				await handle.responder.async_close()
			except Exception as exc:
				logger.warning(f"Error closing mdns responder: {exc}")

		logger.debug(f"Advertisement of {handle.hostname} stopped")
