"""Base class for operator plugins."""

from abc import ABC, abstractmethod
import logging

from rcoperator.crd.registry import CRDRegistry

logger = logging.getLogger(__name__)


class PluginBase(ABC):
    """One custom resource kind handled by the operator.

    A plugin checks that the CRD models it serves are registered, builds
    the reconciler for its kind when the operator starts and imports the
    kopf handlers that feed that reconciler through the shared work queue.
    """

    def __init__(self):
        self._initialised = False
        self._work_queue = None

    @property
    @abstractmethod
    def name(self):
        """Unique plugin name, used by handlers to look the plugin up."""

    @property
    @abstractmethod
    def version(self):
        pass

    @property
    @abstractmethod
    def description(self):
        pass

    @property
    @abstractmethod
    def models(self):
        """Spec models served by this plugin."""

    @property
    def initialised(self):
        return self._initialised

    @property
    def work_queue(self):
        if self._work_queue is None:
            from rcoperator.handlers.loop import get_work_queue

            self._work_queue = get_work_queue()
        return self._work_queue

    def unregistered_models(self):
        """Names of models missing from the CRD registry."""
        registered = CRDRegistry().list_registered_models()
        return [
            model.__name__
            for model in self.models
            if getattr(model, "_crd_key", None) not in registered
        ]

    def initialise(self):
        """Build the plugin's collaborators.

        Returns:
            bool: True when the plugin is ready to reconcile
        """
        if self._initialised:
            return True

        missing = self.unregistered_models()
        if missing:
            logger.warning(f"Plugin {self.name} serves unregistered models: {missing}")

        logger.info(f"Initialising plugin {self.name} v{self.version}")
        try:
            self._initialise_plugin()
        except Exception as e:
            logger.error(f"Failed to initialise plugin {self.name}: {e}")
            return False

        self._initialised = True
        return True

    def _initialise_plugin(self):
        pass

    def shutdown(self):
        if not self._initialised:
            return

        logger.info(f"Shutting down plugin {self.name}")
        try:
            self._shutdown_plugin()
        except Exception as e:
            logger.error(f"Error shutting down plugin {self.name}: {e}")
        self._initialised = False

    def _shutdown_plugin(self):
        self.work_queue.shutdown()

    @abstractmethod
    def register_handlers(self):
        """Import the kopf handlers of this plugin."""

    def describe(self):
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "models": [model.__name__ for model in self.models],
            "status": "ready" if self._initialised else "not_initialised",
        }
