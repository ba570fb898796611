"""Loader for declaration snapshots.

Snapshots are YAML (or JSON, which YAML accepts) documents produced by the
annotation front end. String values may reference environment variables as
``${VAR}`` or ``${VAR:-default}``.
"""

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import ValidationError

from ioc_planner.errors import SnapshotParseError, SnapshotValidationError
from ioc_planner.models import DeclarationSnapshot

# ${VAR_NAME} or ${VAR_NAME:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def parse_snapshot(path: Path) -> DeclarationSnapshot:
    """Parse a declaration snapshot from a file with environment substitution.

    Args:
        path: Path to the snapshot YAML or JSON file.

    Returns:
        Validated snapshot model.

    Raises:
        SnapshotParseError: If the file cannot be read, the document is not
            valid YAML or not a mapping, or an environment variable without
            default is undefined.
        SnapshotValidationError: If the document does not describe a snapshot.

    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise SnapshotParseError(f"Snapshot file not found: {path}") from e
    except yaml.YAMLError as e:
        raise SnapshotParseError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise SnapshotParseError(f"Cannot read snapshot file {path}: {e}") from e

    if not isinstance(data, dict):
        raise SnapshotParseError(f"Snapshot {path} must contain a mapping")

    data = _substitute_env_vars(data, path)
    return parse_snapshot_from_dict(cast(dict[str, Any], data))


def _substitute_env_vars(value: Any, path: Path) -> Any:  # noqa: ANN401
    if isinstance(value, str):
        return _substitute_string(value, path)
    if isinstance(value, dict):
        dict_value = cast(dict[str, Any], value)
        return {k: _substitute_env_vars(v, path) for k, v in dict_value.items()}
    if isinstance(value, list):
        list_value = cast(list[Any], value)
        return [_substitute_env_vars(item, path) for item in list_value]
    return value


def _substitute_string(value: str, path: Path) -> str:
    def replace_match(match: re.Match[str]) -> str:
        var_name, default = match.group(1), match.group(2)
        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        if default is not None:
            return default
        raise SnapshotParseError(
            f"Environment variable '{var_name}' is not defined "
            f"(referenced in {path})"
        )

    return _ENV_VAR_PATTERN.sub(replace_match, value)


def parse_snapshot_from_dict(data: dict[str, Any]) -> DeclarationSnapshot:
    """Parse a snapshot directly from a dictionary.

    No environment substitution is performed; ``${VAR}`` strings stay literal.

    Args:
        data: Dictionary in the snapshot format.

    Returns:
        Validated snapshot model.

    Raises:
        SnapshotValidationError: If the dict structure is invalid.

    """
    try:
        return DeclarationSnapshot.model_validate(data)
    except ValidationError as e:
        raise SnapshotValidationError(f"Invalid snapshot structure: {e}") from e
