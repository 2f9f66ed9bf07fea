"""RuntimeComponent plugin."""

import logging

from .base import PluginBase

logger = logging.getLogger(__name__)

STORAGE_VERSION = "v1beta2"


class RuntimeComponentsPlugin(PluginBase):
    """Plugin reconciling RuntimeComponents into workloads and services."""

    def __init__(self):
        super().__init__()
        self.config_source = None
        self.reconciler = None

    @property
    def name(self):
        return "runtime-components"

    @property
    def version(self):
        return "1.0.0"

    @property
    def description(self):
        return "Deploys applications described by RuntimeComponent resources"

    @property
    def models(self):
        from rcoperator.models.runtime_component import (
            RuntimeComponentSpecV1Beta1,
            RuntimeComponentSpecV1Beta2,
        )

        return [RuntimeComponentSpecV1Beta1, RuntimeComponentSpecV1Beta2]

    def _initialise_plugin(self):
        from rcoperator.config import ConfigMapSource
        from rcoperator.models.runtime_component import PLURAL
        from rcoperator.reconcile import (
            ComponentReconciler,
            ConvergencePolicy,
            ReadinessEvaluator,
        )
        from rcoperator.services import (
            KopfEventRecorder,
            KubeResourceLoader,
            KubeStatusWriter,
            KubeWorkloadReader,
            TemplateSynthesizer,
        )
        from rcoperator.services.synthesizer import get_template_dir

        template_dir = get_template_dir()
        if not template_dir.exists():
            logger.warning(f"Child resource templates not found at {template_dir}")

        self.config_source = ConfigMapSource()
        policy = ConvergencePolicy(
            status_writer=KubeStatusWriter(PLURAL, STORAGE_VERSION),
            evaluator=ReadinessEvaluator(KubeWorkloadReader()),
            events=KopfEventRecorder(),
        )
        self.reconciler = ComponentReconciler(
            config_source=self.config_source,
            loader=KubeResourceLoader(PLURAL, STORAGE_VERSION),
            synthesizer=TemplateSynthesizer(template_dir=template_dir),
            policy=policy,
        )

    def register_handlers(self):
        """Register kopf handlers for RuntimeComponents."""
        logger.info("Registering runtime component handlers...")
        from rcoperator.handlers import runtime_component_handler  # noqa: F401
