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

"""Helpers for reading drive API response documents.

Drive responses nest the interesting fields a few levels deep
("data.storage.kss.node_urls"). Lookups use JSONPath expressions parsed by
jsonpath-ng, and absent fields come back as MISSING rather than a silent
default so callers decide explicitly what an absent field means.

JSONPath Syntax:
    - "result" -> {"result": "ok"}
    - "data.storage.uploadId" -> {"data": {"storage": {"uploadId": "..."}}}
"""

from __future__ import annotations

from functools import lru_cache
import json
from typing import Any

from jsonpath_ng import parse as jsonpath_parse


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@lru_cache(maxsize=64)
def _compile(path: str):
    return jsonpath_parse(path)


def find_value(document: Any, path: str) -> Any:
    """Return the first value at path, or MISSING if nothing matches."""
    matches = _compile(path).find(document)
    if not matches:
        return MISSING
    return matches[0].value


def find_str(document: Any, path: str) -> str:
    """Return the value at path as a string; absent or null becomes ""."""
    value = find_value(document, path)
    if value is MISSING or value is None:
        return ""
    return str(value)


def result_error(document: dict[str, Any]) -> str | None:
    """Check the top-level result marker.

    Returns:
        None when result == "ok", otherwise the server description (or the
        raw result marker when no description was sent).
    """
    result = find_str(document, "result")
    if result == "ok":
        return None
    return find_str(document, "description") or f"result={result or 'missing'}"


def parse_jsonp(text: str) -> dict[str, Any]:
    """Decode a "callback({...})" JSONP body into a dict.

    Raises:
        ValueError: If the body is not a JSON object wrapped in a callback.
    """
    body = text.strip().rstrip(";")
    start = body.find("(")
    if start != -1 and body.endswith(")"):
        body = body[start + 1 : -1]
    document = json.loads(body)
    if not isinstance(document, dict):
        raise ValueError("JSONP payload is not an object")
    return document
