"""Reading the live state of child workloads."""

import logging

import kubernetes
from kubernetes.client.exceptions import ApiException

from rcoperator.crd.conditions import ConditionType
from rcoperator.errors import TRANSPORT_ERRORS, from_api_exception, from_transport_error
from rcoperator.reconcile.desired_state import WorkloadKind
from rcoperator.reconcile.ports import WorkloadReader
from rcoperator.reconcile.types import ChildKind, LiveWorkload

logger = logging.getLogger(__name__)

KNATIVE_GROUP = "serving.knative.dev"
KNATIVE_VERSION = "v1"
KNATIVE_PLURAL = "services"


class KubeWorkloadReader(WorkloadReader):
    def __init__(self, apps_api=None, custom_api=None):
        self.apps_api = apps_api or kubernetes.client.AppsV1Api()
        self.custom_api = custom_api or kubernetes.client.CustomObjectsApi()

    def read_workload(self, desired):
        try:
            if desired.workload_kind == WorkloadKind.KNATIVE_SERVICE:
                return self._read_knative(desired)
            if desired.workload_kind == WorkloadKind.STATEFUL_SET:
                workload = self.apps_api.read_namespaced_stateful_set(
                    name=desired.name, namespace=desired.namespace
                )
                return _replica_workload(ChildKind.STATEFUL_SET, workload)
            workload = self.apps_api.read_namespaced_deployment(
                name=desired.name, namespace=desired.namespace
            )
            return _replica_workload(ChildKind.DEPLOYMENT, workload)
        except ApiException as e:
            if e.status == 404:
                return None
            raise from_api_exception(e, ConditionType.RESOURCES_READY) from e
        except TRANSPORT_ERRORS as e:
            raise from_transport_error(e, ConditionType.RESOURCES_READY) from e

    def _read_knative(self, desired):
        service = self.custom_api.get_namespaced_custom_object(
            group=KNATIVE_GROUP,
            version=KNATIVE_VERSION,
            namespace=desired.namespace,
            plural=KNATIVE_PLURAL,
            name=desired.name,
        )
        for condition in (service.get("status") or {}).get("conditions") or []:
            if condition.get("type") == "Ready":
                return LiveWorkload(
                    kind=ChildKind.KNATIVE_SERVICE,
                    ready_status=condition.get("status"),
                    ready_message=condition.get("message", ""),
                )
        return LiveWorkload(kind=ChildKind.KNATIVE_SERVICE)


def _replica_workload(kind, workload):
    status = workload.status
    return LiveWorkload(
        kind=kind,
        replicas=status.replicas or 0,
        ready_replicas=status.ready_replicas or 0,
        updated_replicas=status.updated_replicas or 0,
    )
