"""Configuration loading for repospider (.repospider.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".repospider.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class SearchConfig:
    """Thresholds applied to remote repository searches."""

    max_examined: int = 1500
    max_kept: int = 1500


@dataclass
class ExtractorConfig:
    """Extractor enablement."""

    enabled: List[str] = field(default_factory=list)


@dataclass
class SpiderConfig:
    """Represents the settings defined in .repospider.yml."""

    root: Path
    workspace_id: str = "local"
    store_path: Optional[Path] = None
    pool_size: Optional[int] = None
    clone_under: Optional[Path] = None
    reuse_clones: bool = True
    candidate_timeout: Optional[float] = None
    compute_analytics: bool = False
    search: SearchConfig = field(default_factory=SearchConfig)
    extractors: ExtractorConfig = field(default_factory=ExtractorConfig)


def load_config(config_path: Path) -> SpiderConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return SpiderConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    store_path_str = _as_str(data.get("store_path"))
    clone_under_str = _as_str(data.get("clone_under"))

    search_data = _as_dict(data.get("search"))
    search = SearchConfig()
    if search_data:
        max_examined = _as_int(search_data.get("max_examined"))
        max_kept = _as_int(search_data.get("max_kept"))
        if max_examined is not None:
            search.max_examined = max_examined
        if max_kept is not None:
            search.max_kept = max_kept

    extractor_data = _as_dict(data.get("extractors"))
    extractors = ExtractorConfig()
    if extractor_data:
        extractors.enabled = _as_str_list(extractor_data.get("enabled"))

    pool_size = _as_int(data.get("pool_size"))
    if pool_size is not None and pool_size < 1:
        raise ConfigError("pool_size must be a positive integer")

    reuse_clones = _as_bool(data.get("reuse_clones"))

    return SpiderConfig(
        root=root,
        workspace_id=_as_str(data.get("workspace_id")) or "local",
        store_path=_resolve_path(root, store_path_str),
        pool_size=pool_size,
        clone_under=_resolve_path(root, clone_under_str),
        reuse_clones=True if reuse_clones is None else reuse_clones,
        candidate_timeout=_as_float(data.get("candidate_timeout")),
        compute_analytics=_as_bool(data.get("compute_analytics")) or False,
        search=search,
        extractors=extractors,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _resolve_path(root: Path, value: Optional[str]) -> Optional[Path]:
    if not value:
        return None
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = root / path
    return path


def _read_config(path: Path) -> Dict[str, Any]:
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
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


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


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "ExtractorConfig",
    "SearchConfig",
    "SpiderConfig",
    "load_config",
]
