"""kopf handlers for RuntimeOperation resources."""

import logging

import kopf

from rcoperator import GROUP
from rcoperator.models.runtime_operation import PLURAL
from rcoperator.reconcile.types import ResourceKey

logger = logging.getLogger(__name__)

VERSION = "v1beta1"


def get_operations_plugin():
    from rcoperator.main import plugin_registry

    if not plugin_registry:
        logger.error("Plugin registry not initialised")
        return None

    return plugin_registry.get_plugin("runtime-operations")


@kopf.daemon(GROUP, VERSION, PLURAL, cancellation_timeout=10)
async def runtime_operation_loop(name, namespace, stopped, **kwargs):
    """Drive one RuntimeOperation until it completes or is deleted."""
    plugin = get_operations_plugin()
    if plugin is None or plugin.controller is None:
        raise kopf.TemporaryError("RuntimeOperation plugin is not ready", delay=5)

    key = ResourceKey(namespace, name)
    await plugin.work_queue.run(plugin.controller.reconcile, key, stopped)


@kopf.on.update(GROUP, VERSION, PLURAL, field="spec")
async def runtime_operation_spec_changed(name, namespace, **kwargs):
    plugin = get_operations_plugin()
    if plugin is not None:
        plugin.work_queue.notify(ResourceKey(namespace, name))
