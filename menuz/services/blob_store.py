"""
Durable blob storage for uploaded photos and generated models.

Every stored object is addressed by a flat key such as
``job-images/mj-…/3f2a….jpg`` or ``models/9c1e….glb``. Records never hold
backend-specific URLs: they hold the reference ``/uploads/<key>``, which
GET /uploads/<key> serves from whichever backend is active.

Backends:
- S3BlobStore when AWS credentials and a bucket are configured
- LocalBlobStore rooted at UPLOADS_DIR otherwise
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

from menuz.config import config

EXTENSION_KEY = "menuz.blob_store"
UPLOADS_PREFIX = "/uploads/"


def key_from_ref(ref: str) -> Optional[str]:
    """
    Storage key for a ``/uploads/<key>`` reference, or None if ``ref`` is not
    one (or tries to climb out of the uploads root).
    """
    if not isinstance(ref, str) or not ref.startswith(UPLOADS_PREFIX):
        return None
    key = ref[len(UPLOADS_PREFIX):].strip("/")
    if not key or "\\" in key or any(part in ("", ".", "..") for part in key.split("/")):
        return None
    return key


def ref_for_key(key: str) -> str:
    return f"{UPLOADS_PREFIX}{key.lstrip('/')}"


class BlobStoreError(Exception):
    """A write to the backing storage failed."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"storing {key} failed: {message}")


class BlobStore:
    """Interface shared by both backends."""

    name = "base"

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Store bytes under key and return the /uploads/ reference. Raises BlobStoreError."""
        raise NotImplementedError

    def get(self, key: str) -> Optional[bytes]:
        """Bytes for key, or None when missing."""
        raise NotImplementedError

    def delete_prefix(self, prefix: str) -> dict:
        """Best-effort removal of every object under prefix. Never raises."""
        raise NotImplementedError

    def read_ref(self, ref: str) -> Optional[bytes]:
        key = key_from_ref(ref)
        if key is None:
            return None
        return self.get(key)


class LocalBlobStore(BlobStore):
    name = "local"

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"key escapes uploads root: {key}")
        return path

    def put(self, key, data, content_type="application/octet-stream"):
        try:
            path = self.path_for(key)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except (OSError, ValueError) as e:
            print(f"[BLOB] ERROR: Failed to write {key}: {e}")
            raise BlobStoreError(key, str(e))
        return ref_for_key(key)

    def get(self, key):
        try:
            path = self.path_for(key)
        except ValueError:
            return None
        if not path.is_file():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            print(f"[BLOB] Failed to read {key}: {e}")
            return None

    def delete_prefix(self, prefix):
        result = {"deleted": 0, "errors": []}
        prefix = prefix.strip("/")
        if not prefix:
            return result
        try:
            target = self.path_for(prefix)
        except ValueError as e:
            result["errors"].append({"key": prefix, "message": str(e)})
            return result
        if target.is_dir():
            result["deleted"] = sum(1 for p in target.rglob("*") if p.is_file())
            try:
                shutil.rmtree(target)
            except OSError as e:
                result["errors"].append({"key": prefix, "message": str(e)})
                print(f"[BLOB] ERROR: Failed to delete {prefix}: {e}")
        return result


class S3BlobStore(BlobStore):
    name = "s3"

    def __init__(self, bucket: str, client=None):
        self.bucket = bucket
        self._s3 = client or boto3.client(
            "s3",
            region_name=config.AWS_REGION,
            aws_access_key_id=config.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=config.AWS_SECRET_ACCESS_KEY,
        )

    def put(self, key, data, content_type="application/octet-stream"):
        key = key.lstrip("/")
        try:
            self._s3.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as e:
            print(f"[S3] ERROR: Upload of {key} failed: {e}")
            raise BlobStoreError(key, str(e))
        return ref_for_key(key)

    def get(self, key):
        try:
            resp = self._s3.get_object(Bucket=self.bucket, Key=key)
            return resp["Body"].read()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code not in ("NoSuchKey", "404"):
                print(f"[S3] Failed to read {key}: {code}")
            return None
        except BotoCoreError as e:
            print(f"[S3] Failed to read {key}: {e}")
            return None

    def presign(self, key: str, expires_in: Optional[int] = None) -> Optional[str]:
        try:
            return self._s3.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in or config.S3_PRESIGN_SECONDS,
            )
        except (ClientError, BotoCoreError) as e:
            print(f"[S3] Failed to presign key {key}: {e}")
            return None

    def delete_prefix(self, prefix):
        result = {"deleted": 0, "errors": []}
        prefix = prefix.strip("/")
        if not prefix:
            return result
        prefix += "/"

        try:
            keys = []
            paginator = self._s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []) or [])
        except (ClientError, BotoCoreError) as e:
            result["errors"].append({"key": prefix, "message": str(e)})
            print(f"[S3] ERROR: Listing {prefix} failed: {e}")
            return result

        # S3 accepts at most 1000 keys per delete_objects call
        for i in range(0, len(keys), 1000):
            chunk = [{"Key": k} for k in keys[i : i + 1000]]
            try:
                resp = self._s3.delete_objects(Bucket=self.bucket, Delete={"Objects": chunk, "Quiet": False})
            except (ClientError, BotoCoreError) as e:
                result["errors"].append({"key": "batch", "message": str(e)})
                print(f"[S3] ERROR: Batch delete under {prefix} failed: {e}")
                continue
            result["deleted"] += len(resp.get("Deleted", []) or [])
            for err in resp.get("Errors") or []:
                if err.get("Code") == "NoSuchKey":
                    continue
                result["errors"].append({"key": err.get("Key", ""), "message": err.get("Message", "")})
                print(f"[S3] ERROR: Failed to delete {err.get('Key')}: {err.get('Code')}")
        return result


def build_blob_store() -> BlobStore:
    if config.AWS_CONFIGURED:
        print(f"[BLOB] Using S3 bucket {config.AWS_BUCKET_UPLOADS}")
        return S3BlobStore(config.AWS_BUCKET_UPLOADS)
    print(f"[BLOB] Using local uploads dir {config.UPLOADS_DIR}")
    return LocalBlobStore(config.UPLOADS_DIR)


def get_blob_store() -> BlobStore:
    return current_app.extensions[EXTENSION_KEY]
