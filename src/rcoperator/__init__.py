"""Reconciliation operator for RuntimeComponent and RuntimeOperation resources."""

__version__ = "0.1.0"

GROUP = "rc.app.stacks"
OPERATOR_NAME = "rcoperator"
