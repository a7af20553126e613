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

"""Command-line interface for micloud.

Commands:

    upload: Upload a file (only blocks the drive is missing are sent)
    ls: List a folder
    mkdir: Create a folder
    rm: Delete a file or folder
    url: Print the download URL of a file
    get: Download a file

Example:
    Upload into a folder:
        ```bash
        $ micloud upload ./holiday.mp4 --parent 123456
        ```

    Use an explicit configuration file:
        ```bash
        $ micloud --config ./micloud.yaml ls
        ```

    Enable debug output:
        ```bash
        $ micloud upload ./holiday.mp4 --debug
        ```

Exit Codes:

- 0: Success
- 1: Error (configuration, network, drive or upload failure)

Note:
    Every command loads the effective configuration, opens one DriveSession
    and passes it to the library call. Verbose mode shows full tracebacks on
    errors.

"""

from __future__ import annotations

import argparse
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
import sys
import traceback
from typing import Any

from micloud import __version__
from micloud.config import load_effective_config
from micloud.core import format_size, upload_file
from micloud.drive import (
    create_folder,
    delete_entry,
    download_file,
    get_download_url,
    list_folder,
)
from micloud.exceptions import MiCloudError, UploadError
from micloud.io import build_drive_session
from micloud.logging import get_logger, set_global_logger


def _configure(args: argparse.Namespace) -> dict[str, Any]:
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)
    return load_effective_config(args.config)


def _report_error(args: argparse.Namespace, err: MiCloudError) -> int:
    if isinstance(err, UploadError):
        print(f"Error ({err.stage}): {err}")
    else:
        print(f"Error: {err}")
    if args.verbose or args.debug:
        traceback.print_exc()
    return 1


def cmd_upload(args: argparse.Namespace) -> int:
    """Handler for 'micloud upload' command.

    Args:
        args: Parsed command-line arguments containing the file path, parent
            folder id and flags.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    file_path = Path(args.file).absolute()
    if not file_path.exists():
        print(f"Error: File not found: {file_path}")
        return 1

    try:
        config = _configure(args)
        parent_id = args.parent or str(config.get("upload", {}).get("parent_id", "0"))
        print(f"Uploading: {file_path}")
        print(f"Folder:    {parent_id}")
        print()
        with build_drive_session(config) as drive:
            result = upload_file(file_path, parent_id, drive)
    except MiCloudError as err:
        return _report_error(args, err)

    print("=" * 70)
    print("UPLOAD RESULTS")
    print("=" * 70)
    print(f"File ID:         {result.file_id}")
    print(f"Name:            {result.name}")
    print(f"Size:            {format_size(result.size)}")
    print(f"SHA-1:           {result.sha1}")
    print(f"Blocks:          {result.block_count}")
    print(f"Uploaded:        {result.uploaded_blocks}")
    print(f"Reused:          {result.reused_blocks}")
    print(f"Deduplicated:    {'yes' if result.deduplicated else 'no'}")
    print(f"Status:          {result.status}")
    print("=" * 70)
    print()
    print("[SUCCESS] File uploaded successfully!")
    return 0


def cmd_ls(args: argparse.Namespace) -> int:
    """Handler for 'micloud ls' command."""
    try:
        config = _configure(args)
        with build_drive_session(config) as drive:
            entries = list_folder(drive, args.folder)
    except MiCloudError as err:
        return _report_error(args, err)

    for entry in entries:
        kind = "d" if entry.is_folder else "-"
        size = "" if entry.is_folder else format_size(entry.size)
        print(f"{kind} {entry.id:<24} {size:>10}  {entry.name}")
    print(f"{len(entries)} entr{'y' if len(entries) == 1 else 'ies'}")
    return 0


def cmd_mkdir(args: argparse.Namespace) -> int:
    """Handler for 'micloud mkdir' command."""
    try:
        config = _configure(args)
        with build_drive_session(config) as drive:
            folder_id = create_folder(drive, args.name, args.parent)
    except MiCloudError as err:
        return _report_error(args, err)

    print(f"Created folder {args.name!r}: {folder_id}")
    return 0


def cmd_rm(args: argparse.Namespace) -> int:
    """Handler for 'micloud rm' command."""
    try:
        config = _configure(args)
        with build_drive_session(config) as drive:
            delete_entry(drive, args.id, args.type)
    except MiCloudError as err:
        return _report_error(args, err)

    print(f"Deleted {args.type} {args.id}")
    return 0


def cmd_url(args: argparse.Namespace) -> int:
    """Handler for 'micloud url' command."""
    try:
        config = _configure(args)
        with build_drive_session(config) as drive:
            descriptor = get_download_url(drive, args.id)
    except MiCloudError as err:
        return _report_error(args, err)

    print(descriptor["url"])
    return 0


def cmd_get(args: argparse.Namespace) -> int:
    """Handler for 'micloud get' command."""
    output_dir = Path(args.output_dir).resolve()
    try:
        config = _configure(args)
        with build_drive_session(config) as drive:
            path, sha1 = download_file(drive, args.id, output_dir)
    except MiCloudError as err:
        return _report_error(args, err)

    print(f"Downloaded: {path}")
    print(f"SHA-1:      {sha1}")
    return 0


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed debugging output (implies --verbose)",
    )


def _package_version() -> str:
    try:
        return version("micloud")
    except PackageNotFoundError:
        return __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="micloud",
        description="micloud - deduplicating uploads to a cloud drive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"micloud {_package_version()}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration file merged over defaults and the user config",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    # 'upload' command
    parser_upload = subparsers.add_parser(
        "upload",
        help="Upload a file",
        description="Upload a file. Only blocks the drive does not already hold are sent.",
    )
    parser_upload.add_argument("file", help="Path to the file to upload")
    parser_upload.add_argument(
        "--parent",
        default=None,
        help="Destination folder id (default: upload.parent_id from config, else 0)",
    )
    _add_common_flags(parser_upload)
    parser_upload.set_defaults(func=cmd_upload)

    # 'ls' command
    parser_ls = subparsers.add_parser("ls", help="List a folder")
    parser_ls.add_argument(
        "folder", nargs="?", default="0", help="Folder id (default: 0, the root)"
    )
    _add_common_flags(parser_ls)
    parser_ls.set_defaults(func=cmd_ls)

    # 'mkdir' command
    parser_mkdir = subparsers.add_parser("mkdir", help="Create a folder")
    parser_mkdir.add_argument("name", help="Folder name")
    parser_mkdir.add_argument("--parent", default="0", help="Parent folder id (default: 0)")
    _add_common_flags(parser_mkdir)
    parser_mkdir.set_defaults(func=cmd_mkdir)

    # 'rm' command
    parser_rm = subparsers.add_parser("rm", help="Delete a file or folder")
    parser_rm.add_argument("id", help="File or folder id")
    parser_rm.add_argument(
        "--type", choices=("file", "folder"), default="file", help="Entry type (default: file)"
    )
    _add_common_flags(parser_rm)
    parser_rm.set_defaults(func=cmd_rm)

    # 'url' command
    parser_url = subparsers.add_parser("url", help="Print the download URL of a file")
    parser_url.add_argument("id", help="File id")
    _add_common_flags(parser_url)
    parser_url.set_defaults(func=cmd_url)

    # 'get' command
    parser_get = subparsers.add_parser("get", help="Download a file")
    parser_get.add_argument("id", help="File id")
    parser_get.add_argument(
        "--output-dir", default=".", help="Directory to save into (default: .)"
    )
    _add_common_flags(parser_get)
    parser_get.set_defaults(func=cmd_get)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the micloud CLI.

    This function is registered as the 'micloud' console script in pyproject.toml.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
