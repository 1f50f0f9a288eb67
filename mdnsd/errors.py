"""Exception types raised by the daemon.

Only startup failures abort the process. Once the watcher is running, every
``EnumerationError`` and ``AdvertisementError`` is logged and absorbed.
"""


class MdnsdError (Exception):

	"""Base class for all daemon errors."""


class ConfigurationError (MdnsdError):

	"""Invalid host name or option values supplied by the operator."""


class EnumerationError (MdnsdError):

	"""The operating system could not list its network interfaces."""


class AdvertisementError (MdnsdError):

	"""The advertisement service could not be started."""
