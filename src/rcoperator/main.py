import logging
import os

import kopf
import kubernetes

from rcoperator.config import get_watch_namespaces
from rcoperator.handlers.loop import get_worker_limit
from rcoperator.plugins.registry import PluginRegistry

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Set on startup, read by the kopf handlers
plugin_registry = None


def load_kubernetes_config():
    """Use the service account inside a pod, the kubeconfig otherwise."""
    try:
        kubernetes.config.load_incluster_config()
        logger.info("Using in-cluster Kubernetes config")
        return
    except kubernetes.config.ConfigException:
        pass

    try:
        kubernetes.config.load_kube_config()
        logger.info("Using kubeconfig")
    except kubernetes.config.ConfigException as e:
        logger.warning(f"No usable Kubernetes config: {e}")


def configure_settings(settings):
    settings.batching.worker_limit = get_worker_limit()
    settings.posting.enabled = os.getenv("POSTING_ENABLED", "true").lower() == "true"
    settings.watching.server_timeout = int(os.getenv("SERVER_TIMEOUT", "60"))
    logger.info(
        f"Worker limit {settings.batching.worker_limit}, "
        f"event posting {'on' if settings.posting.enabled else 'off'}, "
        f"watch timeout {settings.watching.server_timeout}s"
    )


def start_plugins():
    registry = PluginRegistry()
    if registry.discover_plugins() == 0:
        raise RuntimeError("No plugins available")

    results = registry.initialise_all_plugins()
    failed = [name for name, ok in results.items() if not ok]
    if len(failed) == len(results):
        raise RuntimeError(f"No plugin could be initialised: {failed}")
    if failed:
        logger.error(f"Plugins not running: {failed}")

    registry.register_all_handlers()
    return registry


@kopf.on.startup()
def startup_fn(settings: kopf.OperatorSettings, **kwargs):
    global plugin_registry

    logger.info("Starting runtime component operator")
    load_kubernetes_config()
    configure_settings(settings)
    plugin_registry = start_plugins()
    logger.info(f"Running plugins: {plugin_registry.list_plugin_names()}")


@kopf.on.cleanup()
def cleanup_fn(**kwargs):
    logger.info("Stopping runtime component operator")
    if plugin_registry:
        plugin_registry.shutdown_all_plugins()


def main():
    # Handlers must be imported before kopf starts watching
    from rcoperator import handlers  # noqa: F401

    namespaces = get_watch_namespaces()
    logger.info(f"Watching {', '.join(namespaces) if namespaces else 'all namespaces'}")

    try:
        kopf.run(namespaces=namespaces or None, clusterwide=not namespaces)
    except KeyboardInterrupt:
        logger.info("Operator stopped by user")


if __name__ == "__main__":
    main()
