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

"""Core orchestration for micloud.

This module wires the upload stages into one operation. Each upload moves
through these states:

    Validated -> Chunked -> Negotiated(FileExists | BlocksNeeded)
              -> [BlockUploadLoop]* -> Committed

Two-Path Architecture:

- **Deduplicated Path** (FileAlreadyExists): the drive already holds content
    with the same whole-file SHA-1. No block is read or sent; the commit only
    carries the upload reference.

- **Transfer Path** (BlocksNeeded): blocks the drive is missing are sent one
    by one to the assigned node; blocks it already holds contribute their
    existing commit token. The commit carries every token in block order.

Design Principles:

- Stages run strictly in sequence; each blocks until its I/O completes
- The drive session is passed in, never held as module state
- Any stage error propagates unchanged and ends the upload; the commit is
  never attempted after a failure

Example:
    Programmatic usage:
        ```python
        from pathlib import Path
        from micloud.config import load_effective_config
        from micloud.core import upload_file
        from micloud.io import build_drive_session

        with build_drive_session(load_effective_config()) as drive:
            result = upload_file(Path("holiday.mp4"), "0", drive)

        print(f"File ID: {result.file_id}")
        print(f"Blocks sent: {result.uploaded_blocks}/{result.block_count}")
        ```

"""

from __future__ import annotations

from pathlib import Path

from micloud.exceptions import DigestError
from micloud.io.session import DriveSession
from micloud.logging import get_global_logger
from micloud.results import UploadResult
from micloud.upload.chunker import CHUNK_SIZE, SourceFile
from micloud.upload.commit import build_final_manifest, commit_file
from micloud.upload.manifest import build_manifest
from micloud.upload.negotiator import FileAlreadyExists, negotiate
from micloud.upload.uploader import ProgressCallback, upload_blocks

TOTAL_STEPS = 5


def format_size(size: int) -> str:
    """Format a byte count for display (e.g., 10485760 -> "10.0 MiB")."""
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024 or unit == "GiB":
            return f"{int(value)} B" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def upload_file(
    file_path: Path,
    parent_id: str,
    drive: DriveSession,
    *,
    chunk_size: int = CHUNK_SIZE,
    progress: ProgressCallback | None = None,
) -> UploadResult:
    """Upload a local file into a drive folder.

    This is the main entry point for the 'micloud upload' command.

    1. Validate the file size (before any hashing)
    2. Compute the whole-file SHA-1 and per-block digests
    3. Negotiate with the drive
    4. Transfer the blocks the drive is missing (skipped if the file exists)
    5. Commit the file under parent_id

    Args:
        file_path: Local file to upload.
        parent_id: Destination folder identifier ("0" is the drive root).
        drive: Authenticated transport.
        chunk_size: Block size in bytes. The drive expects CHUNK_SIZE.
        progress: Optional callback called as progress(done, total) after
            each block.

    Returns:
        UploadResult describing the committed file.

    Raises:
        SizeLimitExceeded: File empty or not smaller than 4 GiB.
        DigestError: File unreadable while hashing or transferring.
        NegotiationError: Drive rejected the manifest.
        NoAvailableNodeError: No storage node offered.
        BlockUploadError: A block transfer failed.
        CommitError: Drive rejected the final registration.
    """
    logger = get_global_logger()

    logger.step(1, TOTAL_STEPS, "Validating file...")
    source = SourceFile.from_path(Path(file_path))
    logger.verbose("FILE", f"{source.name}: {format_size(source.size)}")

    logger.step(2, TOTAL_STEPS, "Computing digests...")
    manifest = build_manifest(source, chunk_size)

    logger.step(3, TOTAL_STEPS, "Negotiating upload...")
    negotiated = negotiate(drive, manifest)

    if isinstance(negotiated, FileAlreadyExists):
        logger.step(4, TOTAL_STEPS, "File already on drive, skipping transfer...")
        final = build_final_manifest(manifest, negotiated)
        uploaded = 0
        reused = len(manifest.blocks)
    else:
        logger.step(4, TOTAL_STEPS, f"Uploading {negotiated.pending_count} block(s)...")
        try:
            with source.path.open("rb") as fh:
                outcomes = upload_blocks(
                    drive,
                    fh,
                    source.size,
                    negotiated,
                    chunk_size=chunk_size,
                    progress=progress,
                )
        except OSError as err:
            raise DigestError(f"cannot open {source.path}: {err}") from err
        final = build_final_manifest(
            manifest, negotiated, [commit_meta for commit_meta, _ in outcomes]
        )
        uploaded = sum(1 for _, transferred in outcomes if transferred)
        reused = len(outcomes) - uploaded

    logger.step(5, TOTAL_STEPS, "Committing file...")
    file_id = commit_file(drive, parent_id, final)

    return UploadResult(
        file_id=file_id,
        name=source.name,
        size=source.size,
        sha1=manifest.sha1,
        block_count=len(manifest.blocks),
        uploaded_blocks=uploaded,
        reused_blocks=reused,
        deduplicated=isinstance(negotiated, FileAlreadyExists),
        status="success",
    )
