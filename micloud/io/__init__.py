"""Input/Output operations for micloud.

This package holds the HTTP transport shared by every drive call and the
helpers for reading drive responses and streaming downloads to disk.

Modules:

session : module
    DriveSession transport with bounded timeouts and read-only retries.
response : module
    JSONPath lookups, result-marker checks and JSONP decoding.
download : module
    Atomic streaming of a response body to disk with SHA-1 hashing.

Public API:

DriveSession : class
    Authenticated transport passed into every drive operation.
build_drive_session : function
    Create a DriveSession from an effective configuration dict.
make_session : function
    Create a requests.Session with retry defaults and provenance headers.
save_stream : function
    Stream a response body to a file atomically.

Example:
    from micloud.config import load_effective_config
    from micloud.io import build_drive_session

    with build_drive_session(load_effective_config()) as drive:
        print(drive.endpoint("create_file"))

"""

from .download import save_stream
from .session import DriveSession, build_drive_session, make_session

__all__ = ["DriveSession", "build_drive_session", "make_session", "save_stream"]
