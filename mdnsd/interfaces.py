"""Network interface enumeration.

Lists every address of every interface on the host using ``ifaddr``.
Loopback interfaces are included; callers decide what to skip.
"""

import dataclasses
import ipaddress
import logging
import typing

import ifaddr

import mdnsd.errors


logger = logging.getLogger(__name__)

IPAddress = typing.Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclasses.dataclass(frozen=True)
class RawInterface:

	"""One address as reported by the operating system."""

	name: str
	address: IPAddress
	index: typing.Optional[int] = None

	@property
	def is_loopback (self) -> bool:

		"""True for addresses on the loopback interface (127.0.0.0/8, ::1)."""

		return self.address.is_loopback


EnumerateFn = typing.Callable[[], typing.List[RawInterface]]


def _parse_address (ip: typing.Union[str, typing.Tuple[str, int, int]]) -> IPAddress:

	"""Convert an ``ifaddr`` address (a string, or an IPv6 tuple) to an ipaddress object."""

	# IPv6 entries arrive as (address, flowinfo, scope_id).
	text = ip[0] if isinstance(ip, tuple) else ip

	return ipaddress.ip_address(text.split("%", 1)[0])


def enumerate_interfaces () -> typing.List[RawInterface]:

	"""Return every (interface, address) pair on the host.

	Raises:
		EnumerationError: The operating system refused to list interfaces.
	"""

	try:
		adapters = ifaddr.get_adapters()
	except OSError as exc:
		raise mdnsd.errors.EnumerationError(f"failed to list network interfaces: {exc}") from exc

	result: typing.List[RawInterface] = []

	for adapter in adapters:
		for ip in adapter.ips:
			try:
				address = _parse_address(ip.ip)
			except ValueError:
				logger.debug(f"Skipping unparsable address {ip.ip!r} on {adapter.name}")
				continue
			result.append(RawInterface(name=adapter.name, address=address, index=adapter.index))

	return result
