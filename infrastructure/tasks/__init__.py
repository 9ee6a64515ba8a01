"""Celery task infrastructure package.

Importing this module wires together the configured Celery app used by the
periodic payment reconciliation and label refund polling jobs.
"""
from .config.celery import celery_app

__all__ = ["celery_app"]
