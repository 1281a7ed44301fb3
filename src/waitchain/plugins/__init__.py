"""Extension layer — execution hooks via pluggy.

INVARIANT: Plugin failures are warnings, never errors.
"""

from waitchain.plugins.hookspecs import hookimpl
from waitchain.plugins.manager import PluginManager

__all__ = ["PluginManager", "hookimpl"]
