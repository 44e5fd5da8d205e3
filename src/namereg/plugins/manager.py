"""Subscriber registration on top of a pluggy plugin manager.

Installed packages subscribe through the ``namereg.plugins`` entry point
group. An entry point may name an instance, a module, or a class; classes
are instantiated before registration so their hooks bind to ``self``.
In-process subscribers call :meth:`PluginManager.register` directly.
"""

from __future__ import annotations

import inspect
import logging
from importlib.metadata import entry_points
from typing import Any

import pluggy

from namereg.plugins.hookspecs import NameregHookSpec

PROJECT_NAME = "namereg"
ENTRY_POINT_GROUP = "namereg.plugins"

logger = logging.getLogger(__name__)


class PluginManager:
    """Owns the pluggy manager and the hook relay the event bus calls."""

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(NameregHookSpec)
        self.loaded = False

    @property
    def hook(self) -> pluggy.HookRelay:
        return self._pm.hook

    def register(self, plugin: object, name: str | None = None) -> str:
        """Subscribe *plugin*. A class is instantiated first.

        Returns the name it was registered under.
        """
        if inspect.isclass(plugin):
            plugin = plugin()
        label = name or type(plugin).__name__
        self._pm.register(plugin, name=label)
        logger.debug("Registered plugin %s", label)
        return label

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    def load_entry_points(self) -> list[str]:
        """Register every installed ``namereg.plugins`` entry point.

        A plugin that fails to import or construct is logged and skipped.
        Returns the names of all registered plugins afterwards.
        """
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            if self._pm.has_plugin(ep.name) or self._pm.is_blocked(ep.name):
                continue
            try:
                self.register(ep.load(), name=ep.name)
            except Exception:
                logger.warning("Could not load plugin %s", ep.name, exc_info=True)
        self.loaded = True
        return self.names()

    def plugins(self) -> list[object]:
        return list(self._pm.get_plugins())

    def names(self) -> list[str]:
        return [self._pm.get_name(p) or type(p).__name__ for p in self._pm.get_plugins()]

    def describe(self) -> list[dict[str, Any]]:
        """``describe_plugin`` answers from the plugins that give one."""
        return [info for info in self._pm.hook.describe_plugin() if info]
