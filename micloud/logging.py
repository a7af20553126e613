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

"""Console output for micloud.

Library modules report what they are doing through a small Logger protocol
instead of calling print() directly. The CLI installs a printing logger;
programmatic callers get silence unless they install one themselves.

Output kinds:
- Step: pipeline stage markers, e.g. "[3/5] Negotiating upload..."
- Progress: a counter for repeated work (blocks sent, bytes downloaded)
- Verbose: status detail, shown with -v
- Debug: request-level detail and merged config, shown with -d (which also
  turns on verbose output)

Example:
    Installing a logger for a script:
        ```python
        from micloud.logging import get_logger, set_global_logger

        set_global_logger(get_logger(verbose=True))
        ```

    Reporting from a pipeline stage:
        ```python
        from micloud.logging import get_global_logger

        log = get_global_logger()
        log.step(4, 5, "Uploading 2 block(s)...")
        log.progress(1, 2, "Uploading blocks")
        log.debug("HTTP", "POST https://node/upload_block_chunk")
        ```
"""

from __future__ import annotations

from typing import Protocol


class Logger(Protocol):
    """What every micloud logger must implement."""

    def step(self, step: int, total: int, message: str) -> None:
        """Report entry into a pipeline stage.

        Args:
            step: 1-based index of the stage.
            total: Number of stages in the pipeline.
            message: Human-readable stage name.
        """
        ...

    def progress(self, done: int, total: int, message: str) -> None:
        """Report how many units of a repeated operation are finished.

        Args:
            done: Units completed so far.
            total: Units expected in total.
            message: Label for the work (e.g., "Uploading blocks").
        """
        ...

    def verbose(self, prefix: str, message: str) -> None:
        """Emit a status line that only matters in verbose mode.

        Args:
            prefix: Short area tag such as "CHUNK" or "COMMIT".
            message: Text to show.
        """
        ...

    def debug(self, prefix: str, message: str) -> None:
        """Emit a diagnostic line that only matters in debug mode.

        Args:
            prefix: Short area tag such as "HTTP" or "CONFIG".
            message: Text to show.
        """
        ...


class DefaultLogger:
    """Prints to stdout; verbose and debug lines are gated by flags."""

    def __init__(self, verbose: bool = False, debug: bool = False) -> None:
        """
        Args:
            verbose: Show verbose lines.
            debug: Show debug lines as well as verbose ones.
        """
        self._verbose = verbose or debug
        self._debug = debug

    def step(self, step: int, total: int, message: str) -> None:
        print(f"[{step}/{total}] {message}")

    def progress(self, done: int, total: int, message: str) -> None:
        # Verbose output interleaves with progress; print full lines instead.
        if self._verbose:
            print(f"[PROGRESS] {message} ({done}/{total})")
            return
        print(f"\r{message} ({done}/{total})", end="" if done < total else "\n")

    def verbose(self, prefix: str, message: str) -> None:
        if self._verbose:
            print(f"[{prefix}] {message}")

    def debug(self, prefix: str, message: str) -> None:
        if self._debug:
            print(f"[{prefix}] {message}")


class SilentLogger:
    """Discards everything. Installed by default."""

    def step(self, step: int, total: int, message: str) -> None:
        pass

    def progress(self, done: int, total: int, message: str) -> None:
        pass

    def verbose(self, prefix: str, message: str) -> None:
        pass

    def debug(self, prefix: str, message: str) -> None:
        pass


_global_logger: Logger = SilentLogger()


def get_logger(verbose: bool = False, debug: bool = False) -> Logger:
    """Build a printing logger for the requested verbosity."""
    return DefaultLogger(verbose=verbose, debug=debug)


def get_global_logger() -> Logger:
    """Return the logger library code should report through."""
    return _global_logger


def set_global_logger(logger: Logger) -> None:
    """Replace the process-wide logger.

    The CLI calls this once per command, after parsing -v/-d.
    """
    global _global_logger
    _global_logger = logger
