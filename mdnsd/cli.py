"""Command-line parsing for the ``mdnsd`` daemon.

Usage::

    mdnsd --name <name> [--interface <iface> ...]
    mdnsd <name> [--interface <iface> ...]
"""

import argparse
import typing

import mdnsd.config
import mdnsd.errors


def build_parser (prog: str = "mdnsd") -> argparse.ArgumentParser:

	"""Create the argument parser."""

	parser = argparse.ArgumentParser(
		prog = prog,
		description = "Advertise <name>.local over multicast DNS and follow network interface changes."
	)

	parser.add_argument("positional_name", nargs="?", metavar="name", help="Host name, resolves as <name>.local")
	parser.add_argument("-n", "--name", help="Host name, resolves as <name>.local")
	parser.add_argument(
		"-i", "--interface",
		dest = "interfaces",
		action = "append",
		default = [],
		metavar = "IFACE",
		help = "Interface name, repeatable or comma-separated. Default is '*' (all)"
	)
	parser.add_argument("--interval", dest="poll_interval", type=float, help="Seconds between interface checks (default: 3)")
	parser.add_argument("-c", "--config", help="YAML settings file")
	parser.add_argument("-v", "--verbose", action="store_true", default=None, help="Log snapshots and diffs at debug level")

	return parser


def parse_args (argv: typing.Optional[typing.Sequence[str]] = None) -> mdnsd.config.DaemonConfig:

	"""Parse ``argv`` (and the ``--config`` file, if any) into a ``DaemonConfig``.

	Exits with status 2 and a usage message on invalid input.
	"""

	parser = build_parser()
	args = parser.parse_args(argv)

	if args.name is not None and args.positional_name is not None:
		parser.error(f"unexpected positional arguments: {args.positional_name}")

	for value in args.interfaces:
		if not value.strip():
			parser.error("empty value in --interface")

	cli_values = {
		"name": args.name if args.name is not None else args.positional_name,
		"interfaces": args.interfaces,
		"poll_interval": args.poll_interval,
		"verbose": args.verbose,
	}

	try:
		file_values = mdnsd.config.load_config(args.config) if args.config else {}
		return mdnsd.config.build_config(file_values, cli_values)
	except mdnsd.errors.ConfigurationError as exc:
		parser.error(str(exc))
