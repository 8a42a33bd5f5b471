"""
Stored file serving.

GET /uploads/<key> streams the file from local disk, or redirects to a
short-lived presigned URL when the blob store is S3.
"""

from __future__ import annotations

from flask import Blueprint, abort, redirect, send_file

from menuz.services.blob_store import LocalBlobStore, S3BlobStore, get_blob_store, key_from_ref
from menuz.utils.helpers import file_ext, get_content_type_for_extension

bp = Blueprint("uploads", __name__)


@bp.route("/uploads/<path:key>", methods=["GET"])
def serve_upload(key):
    key = key_from_ref(f"/uploads/{key}")
    if key is None:
        abort(404)

    blob_store = get_blob_store()
    if isinstance(blob_store, S3BlobStore):
        url = blob_store.presign(key)
        if not url:
            abort(404)
        return redirect(url, code=302)

    if isinstance(blob_store, LocalBlobStore):
        try:
            path = blob_store.path_for(key)
        except ValueError:
            abort(404)
        if not path.is_file():
            abort(404)
        return send_file(path, mimetype=get_content_type_for_extension(file_ext(key)))

    data = blob_store.get(key)
    if data is None:
        abort(404)
    return data, 200, {"Content-Type": get_content_type_for_extension(file_ext(key))}
