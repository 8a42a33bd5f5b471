"""Services package for the Menuz backend."""

from menuz.services.model_job import JobProvider, JobStatus, ModelJob, SourceType
from menuz.services.store import BaseStore, ConcurrentUpdateError, LocalStore, PostgresStore
from menuz.services.blob_store import BlobStore, LocalBlobStore, S3BlobStore
from menuz.services.identity_service import IdentityService
from menuz.services.model_job_service import ModelJobService, list_providers
from menuz.services.catalog_service import CatalogService

__all__ = [
    "JobProvider",
    "JobStatus",
    "ModelJob",
    "SourceType",
    "BaseStore",
    "ConcurrentUpdateError",
    "LocalStore",
    "PostgresStore",
    "BlobStore",
    "LocalBlobStore",
    "S3BlobStore",
    "IdentityService",
    "ModelJobService",
    "list_providers",
    "CatalogService",
]
