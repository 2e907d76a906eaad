"""Configuration loading for securedgen (.securedgen.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .codegen.names import ClassName, is_identifier
from .errors import EmissionError

CONFIG_FILENAME = ".securedgen.yml"
DEFAULT_GENERATED_PACKAGE = "generated"
DEFAULT_MAX_ROUNDS = 10


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class CipherConfig:
    """Overrides for the runtime collaborators, as ``module:Name`` references."""

    passphrase_provider: Optional[str] = None
    tool_interface: Optional[str] = None
    tool_implementation: Optional[str] = None
    tool_error: Optional[str] = None
    serializer: Optional[str] = None
    serializer_error: Optional[str] = None
    illegal_state_error: Optional[str] = None
    transient_marker: Optional[str] = None

    def overrides(self) -> Dict[str, ClassName]:
        result: Dict[str, ClassName] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            try:
                result[item.name] = ClassName.parse(value)
            except (ValueError, EmissionError) as exc:
                raise ConfigError(f"cipher.{item.name}: {exc}") from exc
        return result


@dataclass
class SecuredGenConfig:
    """Represents the settings defined in .securedgen.yml."""

    root: Path
    output_dir: Optional[Path] = None
    generated_package: str = DEFAULT_GENERATED_PACKAGE
    exclude_paths: List[str] = field(default_factory=list)
    templates_dir: Optional[Path] = None
    cipher: CipherConfig = field(default_factory=CipherConfig)
    max_rounds: int = DEFAULT_MAX_ROUNDS
    log_file: Optional[Path] = None

    @property
    def effective_output_dir(self) -> Path:
        return self.output_dir or self.root


def load_config(config_path: Path) -> SecuredGenConfig:
    """Load configuration from a directory or an explicit config file."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return SecuredGenConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    generated_package = _as_str(data.get("generated_package")) or DEFAULT_GENERATED_PACKAGE
    if not all(is_identifier(part) for part in generated_package.split(".")):
        raise ConfigError(f"generated_package is not a valid package name: {generated_package!r}")

    max_rounds = _as_int(data.get("max_rounds"))
    if max_rounds is not None and max_rounds < 1:
        raise ConfigError("max_rounds must be at least 1")

    cipher_data = _as_dict(data.get("cipher"))
    cipher = CipherConfig()
    for item in fields(CipherConfig):
        setattr(cipher, item.name, _as_str(cipher_data.get(item.name)))
    cipher.overrides()

    return SecuredGenConfig(
        root=root,
        output_dir=_as_path(root, data.get("output_dir")),
        generated_package=generated_package,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        templates_dir=_as_path(root, data.get("templates_dir")),
        cipher=cipher,
        max_rounds=max_rounds or DEFAULT_MAX_ROUNDS,
        log_file=_as_path(root, data.get("log_file")),
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_path(root: Path, value: Any) -> Optional[Path]:
    text = _as_str(value)
    if not text:
        return None
    path = Path(text).expanduser()
    return path if path.is_absolute() else root / path


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "CipherConfig",
    "ConfigError",
    "SecuredGenConfig",
    "load_config",
]
