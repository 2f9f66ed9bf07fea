"""Plugin system for the runtime component operator."""

from .base import PluginBase
from .registry import PluginRegistry

__all__ = ["PluginBase", "PluginRegistry"]
