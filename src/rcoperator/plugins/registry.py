"""Discovery and lifecycle of operator plugins."""

import importlib
import logging
from importlib.metadata import entry_points

from .base import PluginBase

logger = logging.getLogger(__name__)

# "module:attribute", the same form entry points use
BUILTIN_PLUGINS = [
    "rcoperator.plugins.components:RuntimeComponentsPlugin",
    "rcoperator.plugins.operations:RuntimeOperationsPlugin",
]
ENTRY_POINT_GROUP = "rcoperator_plugins"


def load_plugin_class(path):
    module_name, _, attribute = path.partition(":")
    module = importlib.import_module(module_name)
    return getattr(module, attribute)


class PluginRegistry:
    """Plugins of the running operator, shared by every instance."""

    _plugins = {}

    def discover_plugins(self, builtin_only=False):
        """Register the builtin plugins and, unless told otherwise, the
        ones installed under the `rcoperator_plugins` entry point group.

        Returns:
            int: Number of plugins registered by this call
        """
        candidates = [(path, lambda path=path: load_plugin_class(path)) for path in BUILTIN_PLUGINS]
        if not builtin_only:
            candidates.extend(
                (ep.name, ep.load) for ep in entry_points(group=ENTRY_POINT_GROUP)
            )

        count = 0
        for name, load in candidates:
            try:
                plugin_class = load()
            except (ImportError, AttributeError) as e:
                logger.error(f"Could not load plugin {name}: {e}")
                continue

            if not (isinstance(plugin_class, type) and issubclass(plugin_class, PluginBase)):
                logger.error(f"Plugin {name} does not inherit from PluginBase")
                continue

            if self.register_plugin(plugin_class()):
                count += 1

        logger.info(f"Discovered {count} plugins")
        return count

    def register_plugin(self, plugin):
        if not isinstance(plugin, PluginBase):
            logger.error(f"Not a plugin: {type(plugin)}")
            return False

        if plugin.name in self._plugins:
            logger.warning(f"Plugin {plugin.name} is already registered")
            return False

        self._plugins[plugin.name] = plugin
        logger.debug(f"Registered plugin {plugin.name} v{plugin.version}")
        return True

    def initialise_all_plugins(self):
        """Initialise every plugin.

        Returns:
            Dict[str, bool]: Initialisation result per plugin name
        """
        results = {name: plugin.initialise() for name, plugin in self._plugins.items()}
        ready = sum(results.values())
        logger.info(f"Initialised {ready}/{len(results)} plugins")
        return results

    def register_all_handlers(self):
        for plugin in self._plugins.values():
            if not plugin.initialised:
                logger.warning(f"Not registering handlers of uninitialised plugin {plugin.name}")
                continue
            plugin.register_handlers()

    def shutdown_all_plugins(self):
        for plugin in self._plugins.values():
            plugin.shutdown()

    def get_plugin(self, name):
        return self._plugins.get(name)

    def list_plugin_names(self):
        return list(self._plugins)

    def describe_plugins(self):
        return [plugin.describe() for plugin in self._plugins.values()]

    def clear(self):
        self._plugins.clear()
