"""Celery task definitions package."""

from .thumbnails import generate_thumbnails

__all__ = ["generate_thumbnails"]
