"""Streaming upload ingestion."""

from core.upload.multipart import MultipartField, MultipartFieldStream
from core.upload.reader import UploadField, UploadedFile, read_upload

__all__ = ["MultipartField", "MultipartFieldStream", "UploadField", "UploadedFile", "read_upload"]
