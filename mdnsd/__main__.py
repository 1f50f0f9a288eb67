import asyncio
import logging
import sys
import typing

import mdnsd.advertiser
import mdnsd.cli
import mdnsd.config
import mdnsd.errors
import mdnsd.interface_filter
import mdnsd.lifecycle
import mdnsd.watcher


logger = logging.getLogger("mdnsd")


def configure_logging (verbose: bool = False) -> None:

	"""
	Log to stderr with second-resolution timestamps.
	"""

	logging.basicConfig(
		level = logging.INFO,
		format = "%(asctime)s %(levelname)s %(message)s",
		datefmt = "%Y-%m-%dT%H:%M:%S"
	)

	logging.getLogger("mdnsd").setLevel(logging.DEBUG if verbose else logging.INFO)


def build_watcher (config: mdnsd.config.DaemonConfig) -> mdnsd.watcher.InterfaceWatcher:

	"""
	Wire the zeroconf advertiser, lifecycle manager and watcher together.
	"""

	interface_filter = mdnsd.interface_filter.InterfaceFilter.from_values(config.interfaces)

	logger.info(f"Config loaded: name={config.name}, interfaces={interface_filter.describe()}")

	advertiser = mdnsd.advertiser.ZeroconfAdvertiser(service_type=config.service_type, port=config.service_port)
	lifecycle = mdnsd.lifecycle.ServiceLifecycleManager(advertiser)

	return mdnsd.watcher.InterfaceWatcher(
		name = config.name,
		interface_filter = interface_filter,
		lifecycle = lifecycle,
		poll_interval = config.poll_interval
	)


def main (argv: typing.Optional[typing.Sequence[str]] = None) -> int:

	"""
	Main entry point for the mdnsd daemon.
	"""

	config = mdnsd.cli.parse_args(argv)

	configure_logging(config.verbose)

	watcher = build_watcher(config)

	try:
		asyncio.run(mdnsd.watcher.run_until_stopped(watcher))
	except (mdnsd.errors.EnumerationError, mdnsd.errors.AdvertisementError) as exc:
		logger.error(f"Startup failed: {exc}")
		return 1

	return 0


if __name__ == "__main__":
	sys.exit(main())
