# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Final registration of uploaded content as a file in a folder.

Every call is a one-shot commit: a failed commit is reported, never retried,
because the drive is not assumed to treat duplicate submissions as a no-op.
"""

from __future__ import annotations

from collections.abc import Sequence
import json

from micloud.exceptions import CommitError, NetworkError
from micloud.io.response import find_str, result_error
from micloud.io.session import DriveSession
from micloud.logging import get_global_logger

from .manifest import BlocksCommit, ExistingUploadCommit, FinalManifest, UploadManifest
from .negotiator import FileAlreadyExists, NegotiationResult


def build_final_manifest(
    manifest: UploadManifest,
    negotiated: NegotiationResult,
    commit_metas: Sequence[str] | None = None,
) -> FinalManifest:
    """Assemble the commit record from the negotiation outcome.

    Args:
        manifest: Manifest that was negotiated.
        negotiated: Negotiation outcome.
        commit_metas: Commit tokens in block order (required for BlocksNeeded).

    Raises:
        ValueError: If commit tokens are missing or do not match the block count.
    """
    if isinstance(negotiated, FileAlreadyExists):
        return ExistingUploadCommit(name=manifest.name, upload_id=negotiated.upload_id)

    if commit_metas is None or len(commit_metas) != len(manifest.blocks):
        got = 0 if commit_metas is None else len(commit_metas)
        raise ValueError(
            f"expected {len(manifest.blocks)} commit token(s), got {got}"
        )
    return BlocksCommit(
        name=manifest.name,
        size=manifest.size,
        sha1=manifest.sha1,
        node_urls=negotiated.node_urls,
        secure_key=negotiated.secure_key,
        content_cache_key=negotiated.content_cache_key,
        file_meta=negotiated.file_meta,
        upload_id=negotiated.upload_id,
        commit_metas=tuple(commit_metas),
    )


def commit_file(drive: DriveSession, parent_id: str, final: FinalManifest) -> str:
    """Register the file under parent_id and return its new identifier.

    Raises:
        CommitError: On transport failure, a non-"ok" result, or a response
            without a file id.
    """
    logger = get_global_logger()
    url = drive.endpoint("commit_file")
    data = json.dumps(final.to_payload(), separators=(",", ":"))
    logger.verbose("COMMIT", f"Registering {final.name} in folder {parent_id}")
    try:
        document = drive.post_form(url, {"data": data, "parentId": parent_id})
    except NetworkError as err:
        raise CommitError(f"commit failed: {err}") from err

    error = result_error(document)
    if error is not None:
        raise CommitError(f"commit rejected: {error}", description=error)

    file_id = find_str(document, "data.id")
    if not file_id:
        raise CommitError("commit succeeded but the response has no file id")
    logger.verbose("COMMIT", f"Created file id: {file_id}")
    return file_id

