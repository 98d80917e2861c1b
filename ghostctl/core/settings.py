"""Engine settings loading and validation from packaged and user YAML files."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from ghostctl.core.errors import ConfigLoadError, ConfigValidationError
from ghostctl.core.model import EngineSettings

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedSettings:
    settings: EngineSettings
    warnings: tuple[str, ...]


def _load_schema_validator() -> Any:
    schema_text = resources.files("ghostctl.schemas").joinpath("settings.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def user_settings_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "ghostctl/config.yaml"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read settings file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Settings file {path} must contain a mapping at root")
    return loaded


def _validate(doc: dict[str, Any], source: Path | Traversable, validator: Any) -> None:
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc


def _build_settings(doc: dict[str, Any]) -> EngineSettings:
    known = {f.name for f in fields(EngineSettings)}
    return EngineSettings(**{key: value for key, value in doc.items() if key in known})


def load_settings(path: Path | None = None) -> LoadedSettings:
    """Merge the user override (or *path*) over the packaged defaults."""
    validator = _load_schema_validator()
    warnings: list[str] = []

    defaults_path = resources.files("ghostctl.defaults").joinpath("settings.yaml")
    merged = _read_yaml(defaults_path)
    _validate(merged, defaults_path, validator)

    override_path = path or user_settings_path()
    if override_path.is_file():
        override = _read_yaml(override_path)
        _validate(override, override_path, validator)
        if override:
            warning = f"User settings from {override_path} override packaged defaults: {', '.join(sorted(override))}"
            LOGGER.warning(warning)
            warnings.append(warning)
        merged.update(override)
    elif path is not None:
        raise ConfigLoadError(f"Settings file {path} does not exist")

    return LoadedSettings(settings=_build_settings(merged), warnings=tuple(warnings))
