"""Plugin system: hook specifications, plugin manager and built-in plugins."""

from datasubjects.plugins.hookspecs import PROJECT_NAME, hookimpl, hookspec
from datasubjects.plugins.manager import PluginManager

__all__ = ["PROJECT_NAME", "PluginManager", "hookimpl", "hookspec"]
