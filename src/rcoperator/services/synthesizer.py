"""Template driven create-or-update of RuntimeComponent children."""

import logging
import os
from pathlib import Path

import jinja2
import kubernetes
import yaml
from kubernetes.client.exceptions import ApiException

from rcoperator import OPERATOR_NAME
from rcoperator.errors import (
    TRANSPORT_ERRORS,
    ReconcileError,
    from_api_exception,
    from_transport_error,
)
from rcoperator.models.runtime_component import KIND
from rcoperator.reconcile.desired_state import WorkloadKind
from rcoperator.reconcile.ports import ResourceSynthesizer
from rcoperator.reconcile.types import ChildKind
from rcoperator.services.workloads import KNATIVE_GROUP, KNATIVE_PLURAL, KNATIVE_VERSION

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

TEMPLATES = {
    ChildKind.SERVICE: "service.yaml.j2",
    ChildKind.DEPLOYMENT: "deployment.yaml.j2",
    ChildKind.STATEFUL_SET: "statefulset.yaml.j2",
    ChildKind.HORIZONTAL_POD_AUTOSCALER: "hpa.yaml.j2",
    ChildKind.KNATIVE_SERVICE: "knative-service.yaml.j2",
}

# Labels owned by the operator; user labels never override them
RESERVED_LABELS = (
    "app.kubernetes.io/instance",
    "app.kubernetes.io/name",
    "app.kubernetes.io/part-of",
    "app.kubernetes.io/managed-by",
    "app.kubernetes.io/version",
)


def get_template_dir():
    return Path(os.getenv("TEMPLATE_DIR", str(DEFAULT_TEMPLATE_DIR)))


def owner_reference(desired):
    return {
        "apiVersion": desired.api_version,
        "kind": KIND,
        "name": desired.name,
        "uid": desired.uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }


class TemplateSynthesizer(ResourceSynthesizer):
    """Renders child manifests and applies them idempotently.

    Each child is read first; a missing child is created, an existing one
    is patched with the rendered manifest.
    """

    def __init__(
        self,
        template_dir=None,
        core_api=None,
        apps_api=None,
        autoscaling_api=None,
        custom_api=None,
    ):
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir or get_template_dir())),
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=jinja2.StrictUndefined,
        )
        self.core_api = core_api or kubernetes.client.CoreV1Api()
        self.apps_api = apps_api or kubernetes.client.AppsV1Api()
        self.autoscaling_api = autoscaling_api or kubernetes.client.AutoscalingV1Api()
        self.custom_api = custom_api or kubernetes.client.CustomObjectsApi()

    def render(self, desired, kind):
        """Render the manifest for one child kind as a dict."""
        target_port = desired.service_target_port or desired.service_port
        workload_kind = (
            ChildKind.STATEFUL_SET.value
            if desired.workload_kind == WorkloadKind.STATEFUL_SET
            else ChildKind.DEPLOYMENT.value
        )
        try:
            template = self.env.get_template(TEMPLATES[kind])
            rendered = template.render(
                desired=desired,
                managed_by=OPERATOR_NAME,
                reserved_labels=RESERVED_LABELS,
                port_name=f"{target_port}-tcp",
                target_port=target_port,
                workload_kind=workload_kind,
            )
            manifest = yaml.safe_load(rendered)
        except (jinja2.TemplateError, yaml.YAMLError) as e:
            raise ReconcileError(
                f"Failed to render {kind.value} for {desired.namespace}/{desired.name}: {e}",
                reason="RenderError",
            ) from e

        manifest.setdefault("metadata", {})["ownerReferences"] = [
            owner_reference(desired)
        ]
        return manifest

    def _operations(self, kind):
        """Return (read, create, patch, delete) callables for a child kind."""
        if kind == ChildKind.SERVICE:
            api = self.core_api
            return (
                api.read_namespaced_service,
                api.create_namespaced_service,
                api.patch_namespaced_service,
                api.delete_namespaced_service,
            )
        if kind == ChildKind.DEPLOYMENT:
            api = self.apps_api
            return (
                api.read_namespaced_deployment,
                api.create_namespaced_deployment,
                api.patch_namespaced_deployment,
                api.delete_namespaced_deployment,
            )
        if kind == ChildKind.STATEFUL_SET:
            api = self.apps_api
            return (
                api.read_namespaced_stateful_set,
                api.create_namespaced_stateful_set,
                api.patch_namespaced_stateful_set,
                api.delete_namespaced_stateful_set,
            )
        if kind == ChildKind.HORIZONTAL_POD_AUTOSCALER:
            api = self.autoscaling_api
            return (
                api.read_namespaced_horizontal_pod_autoscaler,
                api.create_namespaced_horizontal_pod_autoscaler,
                api.patch_namespaced_horizontal_pod_autoscaler,
                api.delete_namespaced_horizontal_pod_autoscaler,
            )
        return self._knative_operations()

    def _knative_operations(self):
        api = self.custom_api
        coordinates = {
            "group": KNATIVE_GROUP,
            "version": KNATIVE_VERSION,
            "plural": KNATIVE_PLURAL,
        }

        def read(name, namespace):
            return api.get_namespaced_custom_object(
                name=name, namespace=namespace, **coordinates
            )

        def create(namespace, body):
            return api.create_namespaced_custom_object(
                namespace=namespace, body=body, **coordinates
            )

        def patch(name, namespace, body):
            return api.patch_namespaced_custom_object(
                name=name, namespace=namespace, body=body, **coordinates
            )

        def delete(name, namespace):
            return api.delete_namespaced_custom_object(
                name=name, namespace=namespace, **coordinates
            )

        return read, create, patch, delete

    def synthesize_and_apply(self, desired, kind):
        manifest = self.render(desired, kind)
        read, create, patch, _ = self._operations(kind)
        name, namespace = desired.name, desired.namespace

        try:
            try:
                read(name=name, namespace=namespace)
            except ApiException as e:
                if e.status != 404:
                    logger.error(f"Failed to read {kind.value} {namespace}/{name}: {e}")
                    raise
                create(namespace=namespace, body=manifest)
                logger.info(f"Created {kind.value} {namespace}/{name}")
                return

            patch(name=name, namespace=namespace, body=manifest)
        except ApiException as e:
            raise from_api_exception(e) from e
        except TRANSPORT_ERRORS as e:
            raise from_transport_error(e) from e
        logger.debug(f"Updated {kind.value} {namespace}/{name}")

    def delete(self, desired, kind):
        _, _, _, delete = self._operations(kind)
        name, namespace = desired.name, desired.namespace

        try:
            delete(name=name, namespace=namespace)
        except ApiException as e:
            # Also raised for Knative services when Knative is not installed
            if e.status == 404:
                return
            raise from_api_exception(e) from e
        except TRANSPORT_ERRORS as e:
            raise from_transport_error(e) from e
        logger.info(f"Deleted {kind.value} {namespace}/{name}")
