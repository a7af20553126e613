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

"""
Authenticated HTTP transport for the drive API.

Every drive call (negotiation, block transfer, commit, folder operations)
goes through a DriveSession. The session is created once from configuration
and passed explicitly into each operation, so tests can swap the network for
requests-mock without touching global state.

Key Features:

- **Bounded timeouts** - Every request carries a timeout. Block transfers use
  their own, longer timeout (http.block_timeout).
- **Retry for reads only** - GET/HEAD retry on transient statuses (429, 500,
  502, 503, 504) with exponential backoff via urllib3.util.Retry. POSTs are
  never retried: negotiation, block transfer and commit are one-shot.
- **Provenance headers** - DNT/Origin/Referer from http.headers are sent on
  every request.
- **Session credentials** - The service token is added to form posts as the
  serviceToken field; cookies from auth.cookies are attached to the session.

Example:
    >>> from micloud.config import load_effective_config
    >>> from micloud.io import build_drive_session
    >>> with build_drive_session(load_effective_config()) as drive:
    ...     url = drive.endpoint("folder_children", id="0")

Notes:
- Transport failures, HTTP error statuses and non-JSON bodies raise
  NetworkError; pipeline stages re-raise them as their own error type
- Request/response summaries go to the global logger at debug level
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from micloud import __version__
from micloud.exceptions import ConfigError, NetworkError
from micloud.logging import get_global_logger

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
OCTET_CONTENT_TYPE = "application/octet-stream"


def make_session(
    headers: dict[str, str] | None = None,
    cookies: dict[str, str] | None = None,
) -> requests.Session:
    """
    Create a requests.Session with retry/backoff defaults for read requests.

    - Retries GET/HEAD on common transient status codes.
    - Applies exponential backoff.
    - Sets a User-Agent plus the given provenance headers and cookies.
    """
    s = requests.Session()
    retries = Retry(
        total=5,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD"),
        raise_on_status=False,
    )
    s.headers.update({"User-Agent": f"micloud/{__version__}"})
    if headers:
        s.headers.update({str(k): str(v) for k, v in headers.items()})
    if cookies:
        for name, value in cookies.items():
            s.cookies.set(str(name), str(value))
    s.mount("http://", HTTPAdapter(max_retries=retries))
    s.mount("https://", HTTPAdapter(max_retries=retries))
    return s


class DriveSession:
    """Authenticated transport shared by every drive operation.

    Args:
        session: Underlying requests session (headers and cookies already set).
        base_url: Drive API root, e.g. "https://i.mi.com".
        endpoints: Mapping of endpoint name to path template.
        service_token: Token sent as the serviceToken form field.
        timeout: Timeout in seconds for API requests.
        block_timeout: Timeout in seconds for block transfers.
    """

    def __init__(
        self,
        session: requests.Session,
        *,
        base_url: str,
        endpoints: dict[str, str],
        service_token: str,
        timeout: float = 30,
        block_timeout: float = 300,
    ) -> None:
        self.session = session
        self.base_url = base_url.rstrip("/") + "/"
        self.endpoints = dict(endpoints)
        self.service_token = service_token
        self.timeout = timeout
        self.block_timeout = block_timeout

    def __enter__(self) -> DriveSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def endpoint(self, name: str, **params: str) -> str:
        """Resolve a named endpoint to an absolute URL.

        Raises:
            ConfigError: If the endpoint is not configured.
        """
        try:
            template = self.endpoints[name]
        except KeyError as err:
            raise ConfigError(f"api.endpoints.{name} is not configured") from err
        return urljoin(self.base_url, template.format(**params).lstrip("/"))

    # -------------------------------
    # Requests
    # -------------------------------

    def post_form(self, url: str, fields: dict[str, str]) -> dict[str, Any]:
        """POST form fields (plus serviceToken) and return the JSON body.

        An error status whose body is a drive rejection ({"result": "error", ...})
        is returned like a success so callers can report its description.
        """
        payload = dict(fields)
        payload["serviceToken"] = self.service_token
        response = self._send(
            "POST",
            url,
            data=payload,
            headers={"Content-Type": FORM_CONTENT_TYPE},
            timeout=self.timeout,
            error_body=True,
        )
        return _decode_json(response)

    def get_json(self, url: str) -> dict[str, Any]:
        """GET a URL and return the JSON body."""
        return _decode_json(self._send("GET", url, timeout=self.timeout))

    def get_text(self, url: str) -> str:
        """GET a URL and return the body as text (used for JSONP payloads)."""
        return self._send("GET", url, timeout=self.timeout).text

    def post_bytes(
        self, url: str, data: bytes, *, params: dict[str, str]
    ) -> dict[str, Any]:
        """POST raw bytes as application/octet-stream and return the JSON body."""
        response = self._send(
            "POST",
            url,
            params=params,
            data=data,
            headers={"Content-Type": OCTET_CONTENT_TYPE},
            timeout=self.block_timeout,
        )
        return _decode_json(response)

    def open_stream(self, url: str, fields: dict[str, str]) -> requests.Response:
        """POST form fields and return the streaming response (caller closes it)."""
        return self._send(
            "POST",
            url,
            data=fields,
            headers={"Content-Type": FORM_CONTENT_TYPE},
            timeout=self.timeout,
            stream=True,
        )

    def _send(
        self, method: str, url: str, *, error_body: bool = False, **kwargs: Any
    ) -> requests.Response:
        logger = get_global_logger()
        logger.debug("HTTP", f"{method} {url}")
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as err:
            raise NetworkError(f"{method} {url} failed: {err}") from err

        logger.debug("HTTP", f"Response: {response.status_code} {response.reason}")
        try:
            response.raise_for_status()
        except requests.HTTPError as err:
            # A drive rejection can arrive with an error status and a JSON
            # result document; hand it to the caller so its description
            # survives.
            if error_body and _is_result_document(response):
                logger.debug("HTTP", "Error status carries a result document")
                return response
            response.close()
            raise NetworkError(f"{method} {url} failed: {err}") from err
        return response


def _is_result_document(response: requests.Response) -> bool:
    try:
        document = response.json()
    except ValueError:
        return False
    return isinstance(document, dict) and document.get("result", "ok") != "ok"


def _decode_json(response: requests.Response) -> dict[str, Any]:
    try:
        document = response.json()
    except (json.JSONDecodeError, ValueError) as err:
        raise NetworkError(
            f"Invalid JSON response from {response.url}. Response: {response.text[:200]}"
        ) from err
    if not isinstance(document, dict):
        raise NetworkError(f"Expected a JSON object from {response.url}")
    return document


def build_drive_session(config: dict[str, Any]) -> DriveSession:
    """Create a DriveSession from an effective configuration dict.

    Args:
        config: Output of load_effective_config().

    Returns:
        A ready-to-use DriveSession.
    """
    api = config.get("api", {})
    auth = config.get("auth", {})
    http = config.get("http", {})
    session = make_session(http.get("headers"), auth.get("cookies"))
    return DriveSession(
        session,
        base_url=api.get("base_url", ""),
        endpoints=api.get("endpoints", {}),
        service_token=auth.get("service_token", ""),
        timeout=http.get("timeout", 30),
        block_timeout=http.get("block_timeout", 300),
    )
