"""Loading custom resources and writing their status subresource."""

import logging

import kubernetes
from kubernetes.client.exceptions import ApiException

from rcoperator import GROUP
from rcoperator.errors import TRANSPORT_ERRORS, from_api_exception, from_transport_error
from rcoperator.reconcile.ports import ResourceLoader, StatusWriter

logger = logging.getLogger(__name__)


class CustomObjectClient:
    """Shared coordinates of one custom resource kind."""

    def __init__(self, plural, version, group=GROUP, api=None):
        self.plural = plural
        self.version = version
        self.group = group
        self._api = api

    @property
    def api(self):
        if self._api is None:
            self._api = kubernetes.client.CustomObjectsApi()
        return self._api


class KubeResourceLoader(CustomObjectClient, ResourceLoader):
    """Reads a custom resource at the configured API version."""

    def load(self, key):
        try:
            return self.api.get_namespaced_custom_object(
                group=self.group,
                version=self.version,
                namespace=key.namespace,
                plural=self.plural,
                name=key.name,
            )
        except ApiException as e:
            raise from_api_exception(e) from e
        except TRANSPORT_ERRORS as e:
            raise from_transport_error(e) from e


class KubeStatusWriter(CustomObjectClient, StatusWriter):
    """Merge-patches the status subresource.

    The resource version sent with the patch makes the API server reject
    writes based on a stale read with a 409.
    """

    def update_status(self, key, status, resource_version):
        body = {"status": status}
        if resource_version:
            body["metadata"] = {"resourceVersion": resource_version}

        try:
            result = self.api.patch_namespaced_custom_object_status(
                group=self.group,
                version=self.version,
                namespace=key.namespace,
                plural=self.plural,
                name=key.name,
                body=body,
            )
        except ApiException as e:
            raise from_api_exception(e) from e
        except TRANSPORT_ERRORS as e:
            raise from_transport_error(e) from e

        logger.debug(f"Updated status of {self.plural} {key}")
        return (result or {}).get("metadata", {}).get("resourceVersion")
