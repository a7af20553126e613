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

"""Configuration loading and merging for micloud.

This module implements a three-layer configuration system. Built-in defaults
describe the public drive endpoints; a per-user file adds credentials; an
explicit file passed on the command line overrides both.

Configuration Layers:
    1. **Built-in defaults** (DEFAULT_CONFIG)
       - Endpoint table, provenance headers, timeouts
       - Always present

    2. **User configuration** ($MICLOUD_CONFIG or ~/.config/micloud/config.yaml)
       - Usually holds auth.service_token and auth.cookies
       - Optional; skipped when the file does not exist

    3. **Explicit configuration** (--config PATH)
       - Overrides everything else
       - Must exist when given

Merge Behavior:
    Later layers win. Values combine as follows:

    - **Mappings**: merged key by key, recursively
    - **Lists**: the later list replaces the earlier one whole
    - **Scalars**: the later value replaces the earlier one

Dynamic Injection:
    - A .env file found from the working directory upward is loaded into
      the environment first; variables already set are not overridden
    - String values of the form ${VAR} are replaced with the environment
      variable's value (empty string when unset)
    - auth.service_token falls back to $MICLOUD_SERVICE_TOKEN when empty

Error Handling:
    - ConfigError: explicit file missing, YAML parse errors, empty files,
        non-mapping top level, invalid timeouts or missing base URL
    - Parse errors keep the YAML error as __cause__

Example:
    Basic usage:
        ```python
        from pathlib import Path
        from micloud.config import load_effective_config

        cfg = load_effective_config(Path("micloud.yaml"))
        print(cfg["api"]["base_url"])  # Output: https://i.mi.com
        ```
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv
import yaml

from micloud.exceptions import ConfigError
from micloud.logging import get_global_logger

USER_CONFIG_ENV = "MICLOUD_CONFIG"
SERVICE_TOKEN_ENV = "MICLOUD_SERVICE_TOKEN"

DEFAULT_CONFIG: dict[str, Any] = {
    "api": {
        "base_url": "https://i.mi.com",
        "endpoints": {
            "create_file": "/drive/user/files/create",
            "commit_file": "/drive/user/files",
            "file_info": "/drive/user/files/{id}?jsonpCallback=callback",
            "folder_children": "/drive/user/folders/{id}/children",
            "create_folder": "/drive/user/folders/create",
            "delete": "/drive/user/delete",
        },
    },
    "auth": {
        "service_token": "",
        "cookies": {},
    },
    "http": {
        "timeout": 30,
        "block_timeout": 300,
        "headers": {
            "DNT": "1",
            "Origin": "https://i.mi.com",
            "Referer": "https://i.mi.com/drive",
        },
    },
    "upload": {
        "parent_id": "0",
    },
}


# -------------------------------
# YAML helpers
# -------------------------------


def _load_yaml_file(p: Path) -> Any:
    """Loads a YAML file and returns the parsed Python object.

    Raises:
        ConfigError: When the file does not exist, is not valid YAML, or is empty.
    """
    if not p.exists():
        raise ConfigError(f"file not found: {p}")
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f"Error parsing YAML: {p}: {err}") from err
    if data is None:
        raise ConfigError(f"YAML file is empty: {p}")
    return data


def _print_yaml_content(data: dict[str, Any]) -> None:
    logger = get_global_logger()
    yaml_str = yaml.dump(data, default_flow_style=False, sort_keys=False)
    for line in yaml_str.split("\n"):
        if line.strip():
            logger.debug("CONFIG", line)


# -------------------------------
# Merge logic
# -------------------------------


def _deep_merge_dicts(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Return base with overlay merged on top; neither input is modified.

    Nested mappings are merged recursively. Any other overlay value,
    lists included, replaces the base value outright.
    """
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge_dicts(result[k], v)
        else:
            result[k] = v
    return result


def _user_config_path() -> Path:
    override = os.environ.get(USER_CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "micloud" / "config.yaml"


def _load_layer(p: Path) -> dict[str, Any]:
    data = _load_yaml_file(p)
    if not isinstance(data, dict):
        raise ConfigError(f"top-level YAML must be a mapping (dict): {p}")
    return data


# -------------------------------
# Dynamic injection
# -------------------------------


def _expand_env(value: Any) -> Any:
    """Replace "${VAR}" strings with environment values, recursing into containers."""
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        env_value = os.environ.get(env_var)
        if not env_value:
            get_global_logger().verbose(
                "CONFIG", f"Warning: Environment variable {env_var} not set"
            )
            return ""
        return env_value
    return value


def _inject_dynamic_values(cfg: dict[str, Any]) -> None:
    auth = cfg.setdefault("auth", {})
    if not auth.get("service_token"):
        auth["service_token"] = os.environ.get(SERVICE_TOKEN_ENV, "")


def _validate(cfg: dict[str, Any]) -> None:
    if not cfg.get("api", {}).get("base_url"):
        raise ConfigError("api.base_url must be set")
    http = cfg.get("http", {})
    for key in ("timeout", "block_timeout"):
        value = http.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"http.{key} must be a number, got {value!r}")
        if value <= 0:
            raise ConfigError(f"http.{key} must be positive, got {value!r}")
    cookies = cfg.get("auth", {}).get("cookies", {})
    if not isinstance(cookies, dict):
        raise ConfigError("auth.cookies must be a mapping")


# -------------------------------
# Public API
# -------------------------------


def load_effective_config(config_path: Path | None = None) -> dict[str, Any]:
    """Loads and merges the effective micloud configuration.

    Performs the following operations:

    1. Start from the built-in defaults
    2. Merge the user configuration file if it exists
    3. Merge the explicit configuration file (required if given)
    4. Load .env into the environment and expand ${VAR} references
    5. Inject auth.service_token from $MICLOUD_SERVICE_TOKEN if empty
    6. Validate base URL and timeouts

    Args:
        config_path: Optional explicit configuration file.

    Returns:
        A merged configuration dict ready for build_drive_session().

    Raises:
        ConfigError: On YAML parse errors, empty files, invalid structure,
            invalid values, or if the explicit file is missing.
    """
    logger = get_global_logger()
    merged = copy.deepcopy(DEFAULT_CONFIG)
    layers_merged = 1

    user_path = _user_config_path()
    if user_path.exists():
        logger.verbose("CONFIG", f"Loading: {user_path}")
        merged = _deep_merge_dicts(merged, _load_layer(user_path))
        layers_merged += 1

    if config_path is not None:
        config_path = Path(config_path).expanduser().resolve()
        logger.verbose("CONFIG", f"Loading: {config_path}")
        explicit = _load_layer(config_path)
        logger.debug("CONFIG", f"--- Content from {config_path.name} ---")
        _print_yaml_content(explicit)
        merged = _deep_merge_dicts(merged, explicit)
        layers_merged += 1

    logger.verbose("CONFIG", f"Deep merged {layers_merged} layer(s)")

    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        logger.verbose("CONFIG", f"Loading environment from: {dotenv_path}")
        load_dotenv(dotenv_path, override=False)

    merged = _expand_env(merged)
    _inject_dynamic_values(merged)
    _validate(merged)

    if not merged["auth"]["service_token"]:
        logger.verbose("CONFIG", "Warning: no service token configured")

    return merged
