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

"""Plain drive operations: list, mkdir, delete, download.

These are single request/response calls over the same DriveSession the
upload pipeline uses. Transport failures raise NetworkError; a non-"ok"
result marker raises DriveError with the server's description.

Downloads resolve in two hops: the file info endpoint returns a JSONP URL,
which in turn returns {"url": ..., "meta": ...}. The content is fetched by
posting the meta token to that URL.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from micloud.exceptions import DriveError, NetworkError
from micloud.io.download import save_stream
from micloud.io.response import find_str, find_value, parse_jsonp, result_error
from micloud.io.session import DriveSession
from micloud.logging import get_global_logger
from micloud.results import FolderEntry


def _check(document: dict[str, Any], action: str) -> None:
    error = result_error(document)
    if error is not None:
        raise DriveError(f"{action} failed: {error}")


def _entry(item: dict[str, Any]) -> FolderEntry:
    modify_time = item.get("modifyTime")
    return FolderEntry(
        id=str(item.get("id", "")),
        name=str(item.get("name", "")),
        type=str(item.get("type", "file")).lower(),
        size=int(item.get("size") or 0),
        modify_time=int(modify_time) if modify_time is not None else None,
    )


def list_folder(drive: DriveSession, folder_id: str = "0") -> list[FolderEntry]:
    """List the entries of a folder ("0" is the drive root)."""
    document = drive.get_json(drive.endpoint("folder_children", id=folder_id))
    _check(document, f"listing folder {folder_id}")
    items = find_value(document, "data.list")
    if not isinstance(items, list):
        return []
    return [_entry(item) for item in items if isinstance(item, dict)]


def create_folder(drive: DriveSession, name: str, parent_id: str = "0") -> str:
    """Create a folder and return its id."""
    document = drive.post_form(
        drive.endpoint("create_folder"), {"name": name, "parentId": parent_id}
    )
    _check(document, f"creating folder {name!r}")
    folder_id = find_str(document, "data.id")
    if not folder_id:
        raise DriveError(f"creating folder {name!r} returned no id")
    return folder_id


def delete_entry(drive: DriveSession, entry_id: str, entry_type: str = "file") -> None:
    """Delete a file or folder."""
    if entry_type not in ("file", "folder"):
        raise ValueError(f"entry_type must be 'file' or 'folder', got {entry_type!r}")
    records = json.dumps([{"id": entry_id, "type": entry_type}])
    document = drive.post_form(
        drive.endpoint("delete"),
        {"operateType": "DELETE", "operateRecords": records},
    )
    _check(document, f"deleting {entry_type} {entry_id}")


def get_download_url(drive: DriveSession, file_id: str) -> dict[str, Any]:
    """Resolve the download descriptor of a file.

    Returns:
        The decoded JSONP descriptor; "url" is the content location and
            "meta" the token to post to it.

    Raises:
        DriveError: If the drive returns no download location.
        NetworkError: On transport failures or an undecodable descriptor.
    """
    logger = get_global_logger()
    document = drive.get_json(drive.endpoint("file_info", id=file_id))
    jsonp_url = find_str(document, "data.storage.jsonpUrl")
    if not jsonp_url:
        raise DriveError(f"no download location for file {file_id}")
    logger.verbose("DRIVE", f"Resolving download URL for {file_id}")
    text = drive.get_text(jsonp_url)
    try:
        descriptor = parse_jsonp(text)
    except ValueError as err:
        raise NetworkError(f"invalid download descriptor for file {file_id}") from err
    if not descriptor.get("url"):
        raise DriveError(f"download descriptor for file {file_id} has no url")
    return descriptor


def download_file(
    drive: DriveSession, file_id: str, destination_folder: Path
) -> tuple[Path, str]:
    """Download a file into destination_folder.

    Returns:
        A tuple (file_path, sha1_hex).
    """
    descriptor = get_download_url(drive, file_id)
    response = drive.open_stream(
        str(descriptor["url"]), {"meta": str(descriptor.get("meta", ""))}
    )
    return save_stream(response, destination_folder, filename=f"{file_id}.bin")
