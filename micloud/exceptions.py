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

"""Exception hierarchy for micloud.

This module defines a custom exception hierarchy that allows library users
to distinguish between different types of errors:

- ConfigError: Configuration-related errors (YAML parse, missing fields, validation failures)
- NetworkError: Transport failures in plain drive operations (list, mkdir, delete, download)
- DriveError: The drive answered a plain operation with a non-"ok" result
- UploadError: Failures of the chunked upload pipeline, one subclass per stage

All exceptions inherit from MiCloudError, allowing users to catch all
micloud errors with a single except clause if needed.

Example:
    Catching a specific upload stage:
        ```python
        from micloud.core import upload_file
        from micloud.exceptions import BlockUploadError, SizeLimitExceeded

        try:
            result = upload_file(Path("video.mp4"), "0", drive)
        except SizeLimitExceeded as e:
            print(f"File rejected before hashing: {e}")
        except BlockUploadError as e:
            print(f"Block {e.index} failed: {e}")
        ```

    Catching all upload errors:
        ```python
        from micloud.exceptions import UploadError

        try:
            result = upload_file(Path("video.mp4"), "0", drive)
        except UploadError as e:
            print(f"{e.stage} failed: {e}")
        ```
"""

from __future__ import annotations

__all__ = [
    "MiCloudError",
    "ConfigError",
    "NetworkError",
    "DriveError",
    "UploadError",
    "SizeLimitExceeded",
    "DigestError",
    "NegotiationError",
    "NoAvailableNodeError",
    "BlockUploadError",
    "CommitError",
]


class MiCloudError(Exception):
    """Base exception for all micloud errors.

    All micloud-specific exceptions inherit from this class, allowing users
    to catch all micloud errors with a single except clause if needed.
    """

    pass


class ConfigError(MiCloudError):
    """Raised for configuration-related errors.

    This exception is raised when there are problems with:

    - YAML parsing (syntax errors, invalid structure)
    - Missing configuration files passed explicitly
    - Invalid values (non-positive timeouts, missing base URL)
    """

    pass


class NetworkError(MiCloudError):
    """Raised when a plain drive request fails at the transport level.

    Covers connection errors, timeouts, HTTP error statuses and bodies that
    are not valid JSON for list, mkdir, delete, and download calls.
    """

    pass


class DriveError(MiCloudError):
    """Raised when the drive answers a plain operation with a non-"ok" result."""

    pass


class UploadError(MiCloudError):
    """Base exception for failures of the chunked upload pipeline.

    Attributes:
        stage: Pipeline stage that failed ("validate", "chunk", "negotiate",
            "upload" or "commit").
        description: Server-supplied description, when the server sent one.
    """

    stage = "upload"

    def __init__(self, message: str, *, description: str | None = None) -> None:
        super().__init__(message)
        self.description = description


class SizeLimitExceeded(UploadError):
    """Raised when a file is empty or not strictly smaller than the size ceiling.

    Checked before any hashing work begins.
    """

    stage = "validate"


class DigestError(UploadError):
    """Raised when the source file cannot be read while hashing or chunking."""

    stage = "chunk"


class NegotiationError(UploadError):
    """Raised when the drive rejects the upload manifest or answers malformed."""

    stage = "negotiate"


class NoAvailableNodeError(NegotiationError):
    """Raised when negotiation succeeds but no storage node address is offered."""

    pass


class BlockUploadError(UploadError):
    """Raised when a block transfer fails or the node reports a non-completed status.

    Attributes:
        index: Zero-based index of the block that failed.
    """

    stage = "upload"

    def __init__(
        self, message: str, *, index: int, description: str | None = None
    ) -> None:
        super().__init__(message, description=description)
        self.index = index


class CommitError(UploadError):
    """Raised when the drive rejects the final file registration."""

    stage = "commit"
