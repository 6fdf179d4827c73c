"""Firebase Storage access for purchase proofs."""

from __future__ import annotations

import os
import tempfile
from typing import TYPE_CHECKING

from firebase_admin import storage
from flask import current_app
from werkzeug.utils import secure_filename

from splitbuy.constants import PROOF_STORAGE_PREFIX
from splitbuy.utils import epoch_millis, utcnow

if TYPE_CHECKING:
    from werkzeug.datastructures import FileStorage


def proof_blob_path(group_buy_id: str, organizer_id: str, filename: str) -> str:
    """Storage path for a proof file, unique per upload."""
    extension = os.path.splitext(secure_filename(filename or ""))[1].lstrip(".")
    name = f"{organizer_id}_{epoch_millis(utcnow())}"
    if extension:
        name = f"{name}.{extension.lower()}"
    return f"{PROOF_STORAGE_PREFIX}/{group_buy_id}/{name}"


def upload_proof(
    group_buy_id: str, organizer_id: str, file_storage: FileStorage
) -> str | None:
    """Upload a proof file to Firebase Storage and return its public URL."""
    try:
        path = proof_blob_path(group_buy_id, organizer_id, file_storage.filename or "")
        bucket = storage.bucket()
        blob = bucket.blob(path)

        with tempfile.NamedTemporaryFile(suffix=os.path.splitext(path)[1]) as temp_file:
            file_storage.save(temp_file.name)
            blob.upload_from_filename(
                temp_file.name, content_type=file_storage.mimetype
            )

        blob.make_public()
        return blob.public_url
    except Exception as e:
        current_app.logger.error(f"Error uploading proof for {group_buy_id}: {e}")
        return None
