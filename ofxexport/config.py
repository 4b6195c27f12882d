"""Export settings loaded from defaults, an optional file and the environment."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Union

try:  # pragma: no cover - optional dependency
    import yaml  # type: ignore
except Exception:  # pragma: no cover - fallback when PyYAML is unavailable
    yaml = None  # type: ignore

from ofxexport.models import APP_ID

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}

# environment variable -> ExportConfig field
ENV_OVERRIDES = {
    "OFX_DB_PATH": "db_path",
    "OFX_OUTPUT": "output_path",
    "OFX_EXPORT_ALL": "export_all",
    "OFX_BANK_ID": "bank_id",
}


@dataclass(frozen=True)
class ExportConfig:
    db_path: Path = Path("gnucash.db")
    output_path: Path = Path("export.ofx")
    export_all: bool = False
    bank_id: str = APP_ID


DEFAULT_CONFIG = ExportConfig()


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Expected a boolean value, got {value!r}")


def _load_config_data(path: Path) -> Mapping[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Export config file not found: {path}")

    text = path.read_text()
    if not text.strip():
        return {}

    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        if yaml is None:
            raise RuntimeError("PyYAML is required to load YAML config files")
        data = yaml.safe_load(text)
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ValueError(f"Unsupported config file format: {path.suffix}")

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError("Export configuration must be a mapping")
    return data


def apply_overrides(base: ExportConfig, overrides: Mapping[str, Any]) -> ExportConfig:
    """Return a copy of *base* with *overrides* applied."""

    if not overrides:
        return base

    known = {f.name for f in fields(ExportConfig)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown export config keys: {', '.join(unknown)}")

    values = {}
    for key, value in overrides.items():
        if key in ("db_path", "output_path"):
            values[key] = Path(value).expanduser()
        elif key == "export_all":
            values[key] = _parse_bool(value)
        else:
            values[key] = str(value)
    return replace(base, **values)


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    base: ExportConfig = DEFAULT_CONFIG,
) -> ExportConfig:
    """Build the export settings.

    File values override *base*; ``OFX_*`` environment variables override
    the file.
    """

    config = base
    if config_path is not None:
        config = apply_overrides(config, _load_config_data(Path(config_path)))

    env = os.environ if environ is None else environ
    env_values = {field: env[var] for var, field in ENV_OVERRIDES.items() if var in env}
    return apply_overrides(config, env_values)
