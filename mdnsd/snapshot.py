"""Point-in-time views of the selected network interfaces.

A ``Snapshot`` is sorted and deduplicated, so two snapshots built from the
same interfaces compare equal no matter what order the operating system
listed them in. The watcher compares consecutive snapshots to decide whether
the advertisement needs to be restarted.
"""

import dataclasses
import logging
import typing

import mdnsd.interface_filter
import mdnsd.interfaces


logger = logging.getLogger(__name__)

IPAddress = mdnsd.interfaces.IPAddress


def _address_key (address: IPAddress) -> typing.Tuple[int, int]:

	"""Order IPv4 before IPv6, then numerically."""

	return (address.version, int(address))


@dataclasses.dataclass(frozen=True)
class InterfaceEntry:

	"""A selected interface address."""

	name: str
	address: IPAddress
	index: typing.Optional[int] = None

	def sort_key (self) -> typing.Tuple[str, int, int, int, int]:

		"""Total order over (name, address, index); a missing index sorts first."""

		version, value = _address_key(self.address)
		has_index = 0 if self.index is None else 1

		return (self.name, version, value, has_index, self.index or 0)

	def __str__ (self) -> str:

		suffix = "" if self.index is None else f"#{self.index}"
		return f"{self.name}{suffix}={self.address}"


@dataclasses.dataclass(frozen=True)
class Snapshot:

	"""An immutable, sorted, deduplicated sequence of interface entries."""

	entries: typing.Tuple[InterfaceEntry, ...] = ()

	def __post_init__ (self) -> None:

		"""Normalise the entries so equality is independent of input order."""

		normalised = tuple(sorted(set(self.entries), key=InterfaceEntry.sort_key))
		object.__setattr__(self, "entries", normalised)

	@classmethod
	def from_interfaces (
		cls,
		interfaces: typing.Iterable[mdnsd.interfaces.RawInterface],
		interface_filter: mdnsd.interface_filter.InterfaceFilter
	) -> "Snapshot":

		"""Keep the non-loopback interfaces the filter selects."""

		entries = [
			InterfaceEntry(name=iface.name, address=iface.address, index=iface.index)
			for iface in interfaces
			if not iface.is_loopback and interface_filter.matches(iface.name)
		]

		return cls(tuple(entries))

	@property
	def addresses (self) -> typing.List[IPAddress]:

		"""Sorted, deduplicated addresses across all entries."""

		return sorted({entry.address for entry in self.entries}, key=_address_key)

	@property
	def names (self) -> typing.List[str]:

		"""Sorted, deduplicated interface names."""

		return sorted({entry.name for entry in self.entries})

	def __iter__ (self) -> typing.Iterator[InterfaceEntry]:

		return iter(self.entries)

	def __len__ (self) -> int:

		return len(self.entries)

	def __str__ (self) -> str:

		return "[" + ", ".join(str(entry) for entry in self.entries) + "]"


@dataclasses.dataclass(frozen=True)
class SnapshotDiff:

	"""Entries that appeared and disappeared between two snapshots."""

	added: typing.Tuple[InterfaceEntry, ...]
	removed: typing.Tuple[InterfaceEntry, ...]

	@property
	def changed (self) -> bool:

		return bool(self.added or self.removed)

	def describe (self) -> str:

		"""Human readable summary, e.g. ``+eth0=10.0.0.5 -wlan0=10.0.0.9``."""

		parts = [f"+{entry}" for entry in self.added] + [f"-{entry}" for entry in self.removed]

		return " ".join(parts) if parts else "no change"


def diff_snapshots (old: Snapshot, new: Snapshot) -> SnapshotDiff:

	"""Compare two snapshots entry by entry."""

	old_entries = set(old.entries)
	new_entries = set(new.entries)

	return SnapshotDiff(
		added = tuple(entry for entry in new.entries if entry not in old_entries),
		removed = tuple(entry for entry in old.entries if entry not in new_entries)
	)


def collect_snapshot (
	interface_filter: mdnsd.interface_filter.InterfaceFilter,
	enumerate_fn: mdnsd.interfaces.EnumerateFn = mdnsd.interfaces.enumerate_interfaces
) -> Snapshot:

	"""Enumerate interfaces once and build a snapshot of the selected ones.

	Raises:
		EnumerationError: Enumeration failed. No partial snapshot is produced.
	"""

	return Snapshot.from_interfaces(enumerate_fn(), interface_filter)


def collect_missing (
	interface_filter: mdnsd.interface_filter.InterfaceFilter,
	enumerate_fn: mdnsd.interfaces.EnumerateFn = mdnsd.interfaces.enumerate_interfaces
) -> typing.List[str]:

	"""Return the requested interface names the host does not have.

	Always empty for an all-interfaces filter. The lookup is made against the
	full enumeration, so a requested loopback interface is never missing.
	"""

	if interface_filter.is_all:
		return []

	existing = {iface.name for iface in enumerate_fn()}

	return sorted(name for name in interface_filter.names if name not in existing)


def selected_addresses (
	interface_filter: mdnsd.interface_filter.InterfaceFilter,
	snapshot: Snapshot
) -> typing.List[IPAddress]:

	"""Return the addresses the advertisement must be restricted to.

	An empty list means *no restriction*: with an all-interfaces filter the
	advertiser binds every interface. It does not mean "bind nothing".
	"""

	if interface_filter.is_all:
		return []

	return snapshot.addresses
