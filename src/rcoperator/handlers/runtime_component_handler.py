"""kopf handlers for RuntimeComponent resources and their children."""

import logging

import kopf

from rcoperator import GROUP, OPERATOR_NAME
from rcoperator.models.runtime_component import KIND, PLURAL
from rcoperator.reconcile.types import ResourceKey

logger = logging.getLogger(__name__)

VERSION = "v1beta2"
MANAGED_LABELS = {"app.kubernetes.io/managed-by": OPERATOR_NAME}


def get_components_plugin():
    """Get the RuntimeComponent plugin from the running operator."""
    from rcoperator.main import plugin_registry

    if not plugin_registry:
        logger.error("Plugin registry not initialised")
        return None

    return plugin_registry.get_plugin("runtime-components")


def _require_plugin():
    plugin = get_components_plugin()
    if plugin is None or plugin.reconciler is None:
        raise kopf.TemporaryError("RuntimeComponent plugin is not ready", delay=5)
    return plugin


@kopf.daemon(GROUP, VERSION, PLURAL, cancellation_timeout=10)
async def runtime_component_loop(name, namespace, stopped, **kwargs):
    """Reconcile one RuntimeComponent for as long as it exists."""
    plugin = _require_plugin()
    key = ResourceKey(namespace, name)
    logger.info(f"Starting reconcile loop for {KIND} {key}")
    await plugin.work_queue.run(plugin.reconciler.reconcile, key, stopped)
    logger.info(f"Stopped reconcile loop for {KIND} {key}")


@kopf.on.event(GROUP, VERSION, PLURAL)
async def runtime_component_event(event, name, namespace, **kwargs):
    """Wake the reconcile loop on any change to the resource."""
    if event.get("type") in (None, "DELETED"):
        return
    plugin = get_components_plugin()
    if plugin is not None:
        plugin.work_queue.notify(ResourceKey(namespace, name))


def _notify_owner(meta, namespace):
    plugin = get_components_plugin()
    if plugin is None:
        return
    for owner in meta.get("ownerReferences") or []:
        if owner.get("kind") == KIND and owner.get("apiVersion", "").startswith(f"{GROUP}/"):
            plugin.work_queue.notify(ResourceKey(namespace, owner["name"]))


@kopf.on.event("apps", "v1", "deployments", labels=MANAGED_LABELS)
@kopf.on.event("apps", "v1", "statefulsets", labels=MANAGED_LABELS)
async def child_workload_event(meta, namespace, **kwargs):
    """Re-check the owning RuntimeComponent when its workload changes."""
    _notify_owner(meta, namespace)
