"""Kubernetes events posted against the reconciled resource."""

import logging

import kopf

from rcoperator.reconcile.ports import EventRecorder

logger = logging.getLogger(__name__)


class KopfEventRecorder(EventRecorder):
    """Posts events through kopf so they attach to the resource body."""

    def warning(self, obj, reason, message):
        try:
            kopf.warn(obj, reason=reason, message=message)
        except Exception as e:
            logger.debug(f"Could not post warning event {reason}: {e}")

    def normal(self, obj, reason, message):
        try:
            kopf.info(obj, reason=reason, message=message)
        except Exception as e:
            logger.debug(f"Could not post event {reason}: {e}")
