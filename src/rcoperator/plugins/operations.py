"""RuntimeOperation plugin."""

import logging

from .base import PluginBase

logger = logging.getLogger(__name__)

STORAGE_VERSION = "v1beta1"


class RuntimeOperationsPlugin(PluginBase):
    """Plugin running RuntimeOperation commands inside application pods."""

    def __init__(self):
        super().__init__()
        self.controller = None

    @property
    def name(self):
        return "runtime-operations"

    @property
    def version(self):
        return "1.0.0"

    @property
    def description(self):
        return "Executes one-shot commands described by RuntimeOperation resources"

    @property
    def models(self):
        from rcoperator.models.runtime_operation import RuntimeOperationSpec

        return [RuntimeOperationSpec]

    def _initialise_plugin(self):
        from rcoperator.models.runtime_operation import PLURAL
        from rcoperator.reconcile import OperationController
        from rcoperator.services import (
            KopfEventRecorder,
            KubeCommandExecutor,
            KubePodReader,
            KubeResourceLoader,
            KubeStatusWriter,
        )

        self.controller = OperationController(
            loader=KubeResourceLoader(PLURAL, STORAGE_VERSION),
            status_writer=KubeStatusWriter(PLURAL, STORAGE_VERSION),
            pod_reader=KubePodReader(),
            executor=KubeCommandExecutor(),
            events=KopfEventRecorder(),
        )

    def register_handlers(self):
        """Register kopf handlers for RuntimeOperations."""
        logger.info("Registering runtime operation handlers...")
        from rcoperator.handlers import runtime_operation_handler  # noqa: F401
