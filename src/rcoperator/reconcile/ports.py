"""Interfaces the reconcilers use to reach the platform."""

from abc import ABC, abstractmethod


class ResourceLoader(ABC):
    """Fetches the primary resource for a key."""

    @abstractmethod
    def load(self, key):
        """Return the resource body as a dict.

        Raises:
            NotFoundError: If the resource no longer exists
        """


class StatusWriter(ABC):
    """Writes the status subresource, gated by the resource version."""

    @abstractmethod
    def update_status(self, key, status, resource_version):
        """Persist status and return the new resource version.

        Raises:
            ConflictError: If resource_version is stale
        """


class ResourceSynthesizer(ABC):
    """Creates, updates and deletes one child resource kind."""

    @abstractmethod
    def synthesize_and_apply(self, desired, kind):
        """Idempotently create or update the child of the given kind."""

    @abstractmethod
    def delete(self, desired, kind):
        """Delete the child of the given kind if it exists."""


class WorkloadReader(ABC):
    @abstractmethod
    def read_workload(self, desired):
        """Return a LiveWorkload, or None if the workload does not exist."""


class PodReader(ABC):
    @abstractmethod
    def read_pod(self, namespace, name):
        """Return a PodInfo, or None if the pod does not exist."""


class CommandExecutor(ABC):
    @abstractmethod
    def execute(self, namespace, pod, container, argv):
        """Run argv in a container and return its output.

        Raises:
            CommandExecutionError: If the command could not run or failed
        """


class EventRecorder(ABC):
    @abstractmethod
    def warning(self, obj, reason, message):
        pass

    @abstractmethod
    def normal(self, obj, reason, message):
        pass
