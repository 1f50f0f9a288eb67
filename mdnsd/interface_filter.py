import typing


WILDCARD = "*"


class InterfaceFilter:

	"""
	Selects which network interfaces the daemon cares about.

	A filter is either *all* interfaces or *only* a fixed set of names.
	Names are compared case-sensitively. Instances are immutable and compare
	equal when they select the same thing.
	"""

	ALL: "InterfaceFilter"

	def __init__ (self, names: typing.Optional[typing.Iterable[str]] = None) -> None:

		"""Create a filter. ``None`` selects every interface."""

		self._names: typing.Optional[typing.FrozenSet[str]] = None if names is None else frozenset(names)

	@classmethod
	def only (cls, names: typing.Iterable[str]) -> "InterfaceFilter":

		"""Create a filter that selects exactly the named interfaces.

		An empty set of names selects every interface, the same as ``from_values``.
		"""

		selected = frozenset(names)

		if not selected:
			return cls.ALL

		return cls(selected)

	@classmethod
	def from_values (cls, values: typing.Sequence[str]) -> "InterfaceFilter":

		"""Build a filter from raw ``--interface`` values.

		Each value may hold several comma-separated names. Whitespace and empty
		entries are ignored. A ``*`` anywhere selects every interface, as does
		an empty list or one that contains nothing but separators.

		Example:
			```python
			InterfaceFilter.from_values(["eth0, wlan0", "eth0"])  # only eth0, wlan0
			InterfaceFilter.from_values(["eth0", "*"])            # all
			```
		"""

		selected: typing.Set[str] = set()

		for value in values:
			for item in value.split(","):
				name = item.strip()
				if not name:
					continue
				if name == WILDCARD:
					return cls.ALL
				selected.add(name)

		return cls.only(selected)

	@property
	def is_all (self) -> bool:

		"""True when every interface is selected."""

		return self._names is None

	@property
	def names (self) -> typing.FrozenSet[str]:

		"""The selected names. Empty for an all-interfaces filter."""

		return self._names if self._names is not None else frozenset()

	def matches (self, name: str) -> bool:

		"""Return True if the interface called ``name`` is selected."""

		if self._names is None:
			return True

		return name in self._names

	def describe (self) -> str:

		"""Return ``*`` or the sorted selected names joined with commas."""

		if self._names is None:
			return WILDCARD

		return ",".join(sorted(self._names))

	def __eq__ (self, other: object) -> bool:

		if not isinstance(other, InterfaceFilter):
			return NotImplemented

		return self._names == other._names

	def __hash__ (self) -> int:

		return hash(self._names)

	def __repr__ (self) -> str:

		if self._names is None:
			return "InterfaceFilter.ALL"

		return f"InterfaceFilter.only({sorted(self._names)!r})"


InterfaceFilter.ALL = InterfaceFilter()
