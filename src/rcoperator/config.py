"""Operator configuration, read from the operator ConfigMap."""

import logging
import os

import kubernetes
from kubernetes.client.exceptions import ApiException
from pydantic import BaseModel

from rcoperator import OPERATOR_NAME
from rcoperator.errors import TRANSPORT_ERRORS

logger = logging.getLogger(__name__)

# ConfigMap keys
RECONCILE_INTERVAL_SECONDS = "reconcileIntervalSeconds"
RECONCILE_INTERVAL_MINIMUM = "reconcileIntervalMinimum"
RECONCILE_INTERVAL_FAILURE = "reconcileIntervalFailure"
RECONCILE_INTERVAL_PERCENTAGE = "reconcileIntervalIncreasePercentage"
RECONCILE_INTERVAL_FAILURE_MAXIMUM = "reconcileIntervalFailureMaximum"
RECONCILE_INTERVAL_SUCCESS_MAXIMUM = "reconcileIntervalSuccessMaximum"
SHOW_RECONCILE_INTERVAL = "showReconcileInterval"
OPERATOR_LOG_LEVEL = "operatorLogLevel"

# Verbosity beyond DEBUG for the finer/finest operator log levels
FINER = 5
FINEST = 1

LOG_LEVELS = {
    "warning": logging.WARNING,
    "info": logging.INFO,
    "fine": logging.DEBUG,
    "finer": FINER,
    "finest": FINEST,
}

logging.addLevelName(FINER, "FINER")
logging.addLevelName(FINEST, "FINEST")


class OperatorConfig(BaseModel):
    """Immutable snapshot of the interval and logging parameters."""

    reconcile_interval: int = 15
    minimum_interval: int = 1
    failure_interval: int = 5
    increase_percentage: int = 0
    failure_maximum: int = 120
    success_maximum: int = 240
    show_reconcile_interval: bool = False
    log_level: str = "info"

    class Config:
        frozen = True

    @classmethod
    def from_config_map(cls, data, source=OPERATOR_NAME):
        """Build a config from ConfigMap data.

        Invalid values are logged and replaced by their defaults.
        """
        data = data or {}
        defaults = cls()
        values = {
            "reconcile_interval": _int_value(
                data, RECONCILE_INTERVAL_SECONDS, defaults.reconcile_interval, 1, source
            ),
            "minimum_interval": _int_value(
                data, RECONCILE_INTERVAL_MINIMUM, defaults.minimum_interval, 1, source
            ),
            "failure_interval": _int_value(
                data, RECONCILE_INTERVAL_FAILURE, defaults.failure_interval, 1, source
            ),
            "increase_percentage": _int_value(
                data, RECONCILE_INTERVAL_PERCENTAGE, defaults.increase_percentage, 0, source
            ),
            "failure_maximum": _int_value(
                data, RECONCILE_INTERVAL_FAILURE_MAXIMUM, defaults.failure_maximum, 1, source
            ),
            "success_maximum": _int_value(
                data, RECONCILE_INTERVAL_SUCCESS_MAXIMUM, defaults.success_maximum, 1, source
            ),
            "show_reconcile_interval": str(
                data.get(SHOW_RECONCILE_INTERVAL, "false")
            ).lower() == "true",
        }

        level = str(data.get(OPERATOR_LOG_LEVEL, defaults.log_level)).lower()
        if level not in LOG_LEVELS:
            logger.warning(
                f"{OPERATOR_LOG_LEVEL} in ConfigMap {source} is set to {level!r}, "
                f"using {defaults.log_level!r}"
            )
            level = defaults.log_level
        values["log_level"] = level

        return cls(**values)

    def to_config_map_data(self):
        return {
            RECONCILE_INTERVAL_SECONDS: str(self.reconcile_interval),
            RECONCILE_INTERVAL_MINIMUM: str(self.minimum_interval),
            RECONCILE_INTERVAL_FAILURE: str(self.failure_interval),
            RECONCILE_INTERVAL_PERCENTAGE: str(self.increase_percentage),
            RECONCILE_INTERVAL_FAILURE_MAXIMUM: str(self.failure_maximum),
            RECONCILE_INTERVAL_SUCCESS_MAXIMUM: str(self.success_maximum),
            SHOW_RECONCILE_INTERVAL: str(self.show_reconcile_interval).lower(),
            OPERATOR_LOG_LEVEL: self.log_level,
        }


def _int_value(data, key, default, minimum, source):
    raw = data.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        logger.warning(
            f"{key} in ConfigMap {source} has an invalid syntax ({e}), using {default}"
        )
        return default
    if value < minimum:
        logger.warning(
            f"{key} in ConfigMap {source} is set to {value}. "
            f"It must be greater than or equal to {minimum}, using {default}"
        )
        return default
    return value


def apply_log_level(config):
    """Apply the configured operator log level to the package logger."""
    logging.getLogger("rcoperator").setLevel(LOG_LEVELS[config.log_level])


def get_operator_name():
    return os.getenv("OPERATOR_NAME", OPERATOR_NAME)


def get_operator_namespace():
    return os.getenv("OPERATOR_NAMESPACE", "default")


def get_watch_namespaces():
    """Namespaces to watch; an empty list means cluster wide."""
    raw = os.getenv("WATCH_NAMESPACES", "")
    return [ns.strip() for ns in raw.split(",") if ns.strip()]


class ConfigMapSource:
    """Reads the operator ConfigMap at the start of every invocation.

    When the ConfigMap cannot be read the last good snapshot is returned,
    so callers always receive a valid configuration.
    """

    def __init__(self, name=None, namespace=None, core_api=None):
        self.name = name or get_operator_name()
        self.namespace = namespace or get_operator_namespace()
        self.core_api = core_api
        self._last = OperatorConfig()

    def _api(self):
        if self.core_api is None:
            self.core_api = kubernetes.client.CoreV1Api()
        return self.core_api

    def load(self):
        api = self._api()
        try:
            cm = api.read_namespaced_config_map(name=self.name, namespace=self.namespace)
        except ApiException as e:
            if e.status == 404:
                self._create_default(api)
            else:
                logger.warning(
                    f"Could not read ConfigMap {self.namespace}/{self.name}: {e.reason}, "
                    f"keeping previous configuration"
                )
            return self._last
        except TRANSPORT_ERRORS as e:
            logger.warning(
                f"Could not reach the API server for ConfigMap {self.namespace}/{self.name}: {e}, "
                f"keeping previous configuration"
            )
            return self._last

        config = OperatorConfig.from_config_map(cm.data, source=self.name)
        if config != self._last:
            logger.info(f"Operator configuration changed: {config.model_dump()}")
            apply_log_level(config)
        self._last = config
        return config

    def _create_default(self, api):
        body = kubernetes.client.V1ConfigMap(
            metadata=kubernetes.client.V1ObjectMeta(
                name=self.name,
                namespace=self.namespace,
                labels={"app.kubernetes.io/managed-by": OPERATOR_NAME},
            ),
            data=OperatorConfig().to_config_map_data(),
        )
        try:
            api.create_namespaced_config_map(namespace=self.namespace, body=body)
            logger.info(f"Created default ConfigMap {self.namespace}/{self.name}")
        except ApiException as e:
            if e.status != 409:
                logger.warning(
                    f"Failed to create ConfigMap {self.namespace}/{self.name}: {e.reason}"
                )
        except TRANSPORT_ERRORS as e:
            logger.warning(f"Failed to create ConfigMap {self.namespace}/{self.name}: {e}")
