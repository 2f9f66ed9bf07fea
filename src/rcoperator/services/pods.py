"""Pod lookup and remote command execution for RuntimeOperations."""

import logging

import kubernetes
import websocket
from kubernetes.client.exceptions import ApiException
from kubernetes.stream import stream

from rcoperator.errors import (
    TRANSPORT_ERRORS,
    CommandExecutionError,
    from_api_exception,
    from_transport_error,
)
from rcoperator.reconcile.ports import CommandExecutor, PodReader
from rcoperator.reconcile.types import PodInfo

logger = logging.getLogger(__name__)

EXEC_TIMEOUT_SECONDS = 300

# Failures of the exec websocket or of the connection underneath it
EXEC_ERRORS = (websocket.WebSocketException,) + TRANSPORT_ERRORS


class KubePodReader(PodReader):
    def __init__(self, core_api=None):
        self.core_api = core_api or kubernetes.client.CoreV1Api()

    def read_pod(self, namespace, name):
        try:
            pod = self.core_api.read_namespaced_pod(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise from_api_exception(e) from e
        except TRANSPORT_ERRORS as e:
            raise from_transport_error(e) from e

        containers = [c.name for c in (pod.spec.containers or [])] if pod.spec else []
        return PodInfo(
            name=name,
            namespace=namespace,
            phase=pod.status.phase if pod.status else None,
            containers=containers,
        )


class KubeCommandExecutor(CommandExecutor):
    """Runs a command in a container over the exec websocket."""

    def __init__(self, core_api=None, timeout=EXEC_TIMEOUT_SECONDS):
        self.core_api = core_api or kubernetes.client.CoreV1Api()
        self.timeout = timeout

    def execute(self, namespace, pod, container, argv):
        logger.info(f"Executing {argv} in {namespace}/{pod} container {container}")
        try:
            client = stream(
                self.core_api.connect_get_namespaced_pod_exec,
                pod,
                namespace,
                container=container,
                command=list(argv),
                stderr=True,
                stdin=False,
                stdout=True,
                tty=False,
                _preload_content=False,
            )
        except ApiException as e:
            raise CommandExecutionError(f"Failed to execute command: {e.reason}") from e
        except EXEC_ERRORS as e:
            raise CommandExecutionError(f"Failed to execute command: {e}") from e

        try:
            client.run_forever(timeout=self.timeout)
            if client.is_open():
                raise CommandExecutionError(
                    f"command did not finish within {self.timeout} seconds"
                )
            stdout = client.read_stdout() or ""
            stderr = client.read_stderr() or ""
            returncode = client.returncode
        except EXEC_ERRORS as e:
            raise CommandExecutionError(f"Lost connection to the command: {e}") from e
        finally:
            client.close()

        if returncode:
            message = stderr.strip() or f"command terminated with exit code {returncode}"
            raise CommandExecutionError(message)
        return stdout
