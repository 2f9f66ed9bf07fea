import copy
from datetime import datetime, timedelta, timezone

import pytest

from rcoperator.config import OperatorConfig
from rcoperator.errors import NotFoundError
from rcoperator.reconcile.ports import (
    CommandExecutor,
    EventRecorder,
    PodReader,
    ResourceLoader,
    ResourceSynthesizer,
    StatusWriter,
    WorkloadReader,
)
from rcoperator.reconcile.types import ResourceKey

START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


class InMemoryStore(ResourceLoader, StatusWriter):
    """Loader and status writer over a dict of resource bodies."""

    def __init__(self):
        self.bodies = {}
        self.writes = []
        self.fail_next = []
        self._version = 1

    def add(self, body):
        metadata = body.setdefault("metadata", {})
        metadata.setdefault("resourceVersion", str(self._version))
        key = ResourceKey(metadata.get("namespace", "default"), metadata["name"])
        self.bodies[key] = body
        return key

    def load(self, key):
        if key not in self.bodies:
            raise NotFoundError(f"{key} not found")
        return copy.deepcopy(self.bodies[key])

    def update_status(self, key, status, resource_version):
        if self.fail_next:
            raise self.fail_next.pop(0)
        self.writes.append(copy.deepcopy(status))
        body = self.bodies[key]
        self._version += 1
        body["status"] = {k: v for k, v in copy.deepcopy(status).items() if v is not None}
        body["metadata"]["resourceVersion"] = str(self._version)
        return str(self._version)

    def status(self, key):
        return self.bodies[key].get("status", {})

    def condition(self, key, condition_type):
        for condition in self.status(key).get("conditions", []):
            if condition["type"] == condition_type:
                return condition
        return None


class RecordingSynthesizer(ResourceSynthesizer):
    def __init__(self):
        self.applied = []
        self.deleted = []
        self.errors = {}

    def synthesize_and_apply(self, desired, kind):
        if kind in self.errors:
            raise self.errors[kind]
        self.applied.append(kind)

    def delete(self, desired, kind):
        self.deleted.append(kind)


class StaticWorkloadReader(WorkloadReader):
    def __init__(self, workload=None):
        self.workload = workload
        self.calls = 0

    def read_workload(self, desired):
        self.calls += 1
        return self.workload


class StaticPodReader(PodReader):
    def __init__(self, pod=None):
        self.pod = pod
        self.calls = 0

    def read_pod(self, namespace, name):
        self.calls += 1
        return self.pod


class RecordingExecutor(CommandExecutor):
    def __init__(self, error=None, output=""):
        self.error = error
        self.output = output
        self.calls = []

    def execute(self, namespace, pod, container, argv):
        self.calls.append((namespace, pod, container, list(argv)))
        if self.error is not None:
            raise self.error
        return self.output


class RecordingEvents(EventRecorder):
    def __init__(self):
        self.events = []

    def warning(self, obj, reason, message):
        self.events.append(("Warning", reason, message))

    def normal(self, obj, reason, message):
        self.events.append(("Normal", reason, message))


class StaticConfigSource:
    def __init__(self, config=None):
        self.config = config or OperatorConfig()
        self.loads = 0

    def load(self):
        self.loads += 1
        return self.config


def make_component(name="app", namespace="demo", spec=None, version="v1beta2", generation=1):
    return {
        "apiVersion": f"rc.app.stacks/{version}",
        "kind": "RuntimeComponent",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": f"uid-{name}",
            "generation": generation,
        },
        "spec": spec if spec is not None else {"applicationImage": "registry/app:1.0"},
    }


def make_operation(name="op", namespace="demo", pod="app-0", container=None, command=None):
    spec = {"podName": pod, "command": command or ["echo", "hello"]}
    if container is not None:
        spec["containerName"] = container
    return {
        "apiVersion": "rc.app.stacks/v1beta1",
        "kind": "RuntimeOperation",
        "metadata": {"name": name, "namespace": namespace, "uid": f"uid-{name}"},
        "spec": spec,
    }


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def config():
    return OperatorConfig()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def synthesizer():
    return RecordingSynthesizer()


@pytest.fixture
def events():
    return RecordingEvents()
