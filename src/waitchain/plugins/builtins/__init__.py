"""Plugins shipped with waitchain."""

from waitchain.plugins.builtins.timing import CheckTimingPlugin

__all__ = ["CheckTimingPlugin"]
