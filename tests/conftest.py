import ipaddress
import typing

import pytest

import mdnsd.advertiser
import mdnsd.errors
import mdnsd.interfaces


def iface (name: str, address: str, index: typing.Optional[int] = None) -> mdnsd.interfaces.RawInterface:

	"""Build a raw interface from plain strings."""

	return mdnsd.interfaces.RawInterface(name=name, address=ipaddress.ip_address(address), index=index)


class FakeEnumerator:

	"""Interface source whose result can be swapped between ticks."""

	def __init__ (self, interfaces: typing.Optional[typing.List[mdnsd.interfaces.RawInterface]] = None) -> None:

		"""Start with ``interfaces`` (empty by default)."""

		self.interfaces: typing.List[mdnsd.interfaces.RawInterface] = list(interfaces or [])
		self.error: typing.Optional[Exception] = None
		self.calls = 0

	def __call__ (self) -> typing.List[mdnsd.interfaces.RawInterface]:

		"""Return the current interfaces, or raise the configured error."""

		self.calls += 1

		if self.error is not None:
			raise self.error

		return list(self.interfaces)

	def fail (self, message: str = "ioctl failed") -> None:

		"""Make every following call raise ``EnumerationError``."""

		self.error = mdnsd.errors.EnumerationError(message)

	def recover (self) -> None:

		"""Stop raising."""

		self.error = None


class FakeAdvertiser:

	"""Records start/stop calls instead of touching the network."""

	def __init__ (self) -> None:

		"""Start with no calls and no live handles."""

		self.calls: typing.List[typing.Tuple[str, typing.Any]] = []
		self.live: typing.List[mdnsd.advertiser.ServiceHandle] = []
		self.fail_next_start = False
		self.max_live = 0

	async def start (self, hostname: str, addresses: typing.Sequence[mdnsd.interfaces.IPAddress]) -> mdnsd.advertiser.ServiceHandle:

		"""Record the call and hand back a plain handle."""

		self.calls.append(("start", (hostname, [str(address) for address in addresses])))

		if self.fail_next_start:
			self.fail_next_start = False
			raise mdnsd.errors.AdvertisementError("address in use")

		handle = mdnsd.advertiser.ServiceHandle(hostname=hostname, addresses=tuple(addresses))
		self.live.append(handle)
		self.max_live = max(self.max_live, len(self.live))

		return handle

	async def stop (self, handle: mdnsd.advertiser.ServiceHandle) -> None:

		"""Record the call and forget the handle."""

		self.calls.append(("stop", handle.hostname))
		self.live.remove(handle)

	def call_names (self) -> typing.List[str]:

		"""Just the method names, in call order."""

		return [name for name, _ in self.calls]


@pytest.fixture
def enumerator () -> FakeEnumerator:

	"""An interface source with eth0, wlan0 and loopback."""

	return FakeEnumerator([
		iface("lo", "127.0.0.1", 1),
		iface("eth0", "10.0.0.5", 2),
		iface("wlan0", "192.168.1.20", 3),
	])


@pytest.fixture
def advertiser () -> FakeAdvertiser:

	"""A recording advertiser."""

	return FakeAdvertiser()
