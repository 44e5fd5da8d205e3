"""Notification sink — plugin system via pluggy.

Discovery: entry points in the ``namereg.plugins`` group.
INVARIANT: Plugin failures are warnings, never errors.
"""

import pluggy

from namereg.plugins.event_bus import EventBus
from namereg.plugins.manager import PluginManager

hookimpl = pluggy.HookimplMarker("namereg")

__all__ = ["EventBus", "PluginManager", "hookimpl"]
