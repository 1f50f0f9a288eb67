"""
mdnsd - advertise a host name over multicast DNS and follow interface changes.

The daemon announces ``<name>.local`` on the local network and keeps that
announcement bound to the host's current network interfaces. Every few
seconds it snapshots the non-loopback interfaces picked by the operator's
filter; when the snapshot changes, the advertisement is stopped and started
again with the new address set.

Run it from the command line:

```
mdnsd printer-hub --interface eth0,wlan0
```

or embed it:

```python
import asyncio
import mdnsd

interface_filter = mdnsd.InterfaceFilter.from_values(["eth0"])
lifecycle = mdnsd.ServiceLifecycleManager(mdnsd.ZeroconfAdvertiser())
watcher = mdnsd.InterfaceWatcher("printer-hub", interface_filter, lifecycle)

asyncio.run(mdnsd.run_until_stopped(watcher))
```

Modules:

- ``interface_filter`` - which interfaces matter (all, or a named set).
- ``interfaces`` - OS interface enumeration via ``ifaddr``.
- ``snapshot`` - sorted, comparable interface snapshots and diffs.
- ``advertiser`` - the zeroconf-backed advertisement service.
- ``lifecycle`` - owns the single live advertisement handle.
- ``watcher`` - the periodic change detection loop.

Package-level exports: ``InterfaceFilter``, ``InterfaceWatcher``,
``ServiceLifecycleManager``, ``ZeroconfAdvertiser``, ``run_until_stopped``.
"""

import mdnsd.advertiser
import mdnsd.interface_filter
import mdnsd.lifecycle
import mdnsd.watcher


InterfaceFilter = mdnsd.interface_filter.InterfaceFilter
InterfaceWatcher = mdnsd.watcher.InterfaceWatcher
ServiceLifecycleManager = mdnsd.lifecycle.ServiceLifecycleManager
ZeroconfAdvertiser = mdnsd.advertiser.ZeroconfAdvertiser
run_until_stopped = mdnsd.watcher.run_until_stopped
