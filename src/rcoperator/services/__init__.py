"""Kubernetes backed implementations of the reconciler ports."""

from .events import KopfEventRecorder
from .pods import KubeCommandExecutor, KubePodReader
from .resources import KubeResourceLoader, KubeStatusWriter
from .synthesizer import TemplateSynthesizer
from .workloads import KubeWorkloadReader

__all__ = [
    "KopfEventRecorder",
    "KubeCommandExecutor",
    "KubePodReader",
    "KubeResourceLoader",
    "KubeStatusWriter",
    "KubeWorkloadReader",
    "TemplateSynthesizer",
]
