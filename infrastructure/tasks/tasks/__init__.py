"""Celery task modules discovered by the worker."""
from . import labels, payments  # noqa: F401
