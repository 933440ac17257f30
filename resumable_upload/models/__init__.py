"""Models module exports"""
from resumable_upload.models.database import Base, UploadSessionRecord

__all__ = ["Base", "UploadSessionRecord"]
