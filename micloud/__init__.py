"""
micloud - deduplicating uploads to a cloud drive

A Python client and CLI for a content-addressable cloud drive that
deduplicates at whole-file and block granularity.

micloud provides:
  - Chunked upload: 4 MiB blocks, SHA-1/MD5 per block, whole-file SHA-1
  - Negotiation so only blocks the drive is missing are transferred
  - Instant "upload" of files the drive already holds
  - Folder listing, folder creation, deletion and downloads
  - Layered YAML configuration with environment expansion

Quick Start
-----------
Upload a file to the drive root:

    $ export MICLOUD_SERVICE_TOKEN=...
    $ micloud upload ./holiday.mp4

List the drive root:

    $ micloud ls

For full CLI documentation:

    $ micloud --help

Package Structure
-----------------
cli : module
    Command-line interface with argparse.
core : module
    Upload orchestration (upload_file).
upload : package
    Digest, chunker, negotiator, block uploader, commit finalizer.
drive : module
    Plain folder and download operations.
config : package
    YAML configuration loading and merging.
io : package
    HTTP transport, response helpers, streaming downloads.

Public API
----------
    from micloud.core import upload_file
    from micloud.config import load_effective_config
    from micloud.io import build_drive_session
"""

__version__ = "0.1.0"
__description__ = "Deduplicating chunked uploads to a cloud drive"

# Re-export commonly used functions for convenience
from micloud.config import load_effective_config
from micloud.core import upload_file
from micloud.io import DriveSession, build_drive_session
from micloud.results import FolderEntry, UploadResult

__all__ = [
    "__version__",
    "__description__",
    "upload_file",
    "load_effective_config",
    "build_drive_session",
    "DriveSession",
    "UploadResult",
    "FolderEntry",
]
