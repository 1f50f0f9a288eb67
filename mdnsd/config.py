"""Daemon settings, merged from an optional YAML file and the command line.

Example ``mdnsd.yaml``:

```yaml
name: printer-hub
interfaces:
  - eth0
  - wlan0
poll_interval: 5
```
"""

import dataclasses
import logging
import os
import typing

import yaml

import mdnsd.advertiser
import mdnsd.errors
import mdnsd.watcher


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class DaemonConfig:

	"""Resolved settings for one daemon run."""

	name: str
	interfaces: typing.List[str] = dataclasses.field(default_factory=lambda: ["*"])
	poll_interval: float = mdnsd.watcher.DEFAULT_POLL_SECONDS
	service_type: str = mdnsd.advertiser.DEFAULT_SERVICE_TYPE
	service_port: int = mdnsd.advertiser.DEFAULT_SERVICE_PORT
	verbose: bool = False


def load_config (config_path: str) -> typing.Dict[str, typing.Any]:

	"""
	Load settings from a YAML file. A missing file yields no settings.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return {}

	with open(config_path, 'r') as f:
		try:
			data = yaml.safe_load(f)
		except yaml.YAMLError as exc:
			raise mdnsd.errors.ConfigurationError(f"invalid YAML in {config_path}: {exc}") from exc

	if data is None:
		return {}

	if not isinstance(data, dict):
		raise mdnsd.errors.ConfigurationError(f"{config_path} must contain a mapping of settings")

	return data


def validate_name (name: typing.Optional[str]) -> str:

	"""Trim the host name and reject a missing or blank one."""

	if name is None:
		raise mdnsd.errors.ConfigurationError("missing required name. use --name <name> or positional <name>")

	trimmed = str(name).strip()

	if not trimmed:
		raise mdnsd.errors.ConfigurationError("name cannot be empty")

	return trimmed


def _as_list (value: typing.Any) -> typing.List[str]:

	if value is None:
		return []

	if isinstance(value, str):
		return [value]

	return [str(item) for item in value]


def build_config (
	file_values: typing.Dict[str, typing.Any],
	cli_values: typing.Dict[str, typing.Any]
) -> DaemonConfig:

	"""Merge file and command-line settings. Command-line values win.

	``None`` and empty lists on the command line mean "not given".
	"""

	merged = dict(file_values)
	merged.update({key: value for key, value in cli_values.items() if value not in (None, [])})

	unknown = set(merged) - {field.name for field in dataclasses.fields(DaemonConfig)}
	if unknown:
		raise mdnsd.errors.ConfigurationError(f"unknown settings: {', '.join(sorted(unknown))}")

	interfaces = _as_list(merged.get("interfaces")) or ["*"]

	try:
		poll_interval = float(merged.get("poll_interval", mdnsd.watcher.DEFAULT_POLL_SECONDS))
		service_port = int(merged.get("service_port", mdnsd.advertiser.DEFAULT_SERVICE_PORT))
	except (TypeError, ValueError) as exc:
		raise mdnsd.errors.ConfigurationError(f"invalid numeric setting: {exc}") from exc

	if poll_interval <= 0:
		raise mdnsd.errors.ConfigurationError("poll_interval must be positive")

	return DaemonConfig(
		name = validate_name(merged.get("name")),
		interfaces = interfaces,
		poll_interval = poll_interval,
		service_type = str(merged.get("service_type", mdnsd.advertiser.DEFAULT_SERVICE_TYPE)),
		service_port = service_port,
		verbose = bool(merged.get("verbose", False))
	)
