"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .io_dataset import DATASET_FORMATS


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected bool for '{field_name}'")
    return value


def _str_list(value: Any, field_name: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Expected list for '{field_name}'")
    out: list[str] = []
    for idx, item in enumerate(value):
        out.append(_str(item, f"{field_name}[{idx}]"))
    return tuple(out)


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class PathsConfig:
    dataset: Path
    logs_dir: Path

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        return cls(
            dataset=_path_from_cfg(raw.get("dataset"), "paths.dataset", root_dir),
            logs_dir=_path_from_cfg(raw.get("logs_dir", "logs"), "paths.logs_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class DatasetConfig:
    format: str
    name_fields: tuple[str, ...]
    check_overlaps: bool

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> DatasetConfig:
        fmt = _str(raw.get("format", "geojson"), "dataset.format").casefold()
        if fmt not in DATASET_FORMATS:
            raise ValueError("dataset.format must be one of: " + ", ".join(DATASET_FORMATS))
        name_fields = _str_list(
            raw.get("name_fields", ["name", "NAME", "ADMIN", "name_en"]),
            "dataset.name_fields",
        )
        if not name_fields:
            raise ValueError("dataset.name_fields must not be empty")
        return cls(
            format=fmt,
            name_fields=name_fields,
            check_overlaps=_bool(raw.get("check_overlaps", False), "dataset.check_overlaps"),
        )

    @classmethod
    def default(cls) -> DatasetConfig:
        return cls.from_mapping({})


@dataclass(frozen=True, slots=True)
class EnrichmentConfig:
    user_agent: str
    request_timeout_s: float
    max_retries: int
    retry_backoff_s: float
    coordinate_precision: int
    time_zone_url: str
    summary_url: str
    max_workers: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> EnrichmentConfig:
        request_timeout_s = _float(raw.get("request_timeout_s", 10), "enrichment.request_timeout_s")
        max_retries = _int(raw.get("max_retries", 2), "enrichment.max_retries")
        retry_backoff_s = _float(raw.get("retry_backoff_s", 0.5), "enrichment.retry_backoff_s")
        coordinate_precision = _int(
            raw.get("coordinate_precision", 2), "enrichment.coordinate_precision"
        )
        max_workers = _int(raw.get("max_workers", 2), "enrichment.max_workers")
        if request_timeout_s <= 0:
            raise ValueError("enrichment.request_timeout_s must be > 0")
        if max_retries < 0:
            raise ValueError("enrichment.max_retries must be >= 0")
        if retry_backoff_s <= 0:
            raise ValueError("enrichment.retry_backoff_s must be > 0")
        if not 0 <= coordinate_precision <= 6:
            raise ValueError("enrichment.coordinate_precision must be between 0 and 6")
        if max_workers < 1:
            raise ValueError("enrichment.max_workers must be >= 1")

        return cls(
            user_agent=_str(raw.get("user_agent", "globepick/0.1"), "enrichment.user_agent"),
            request_timeout_s=request_timeout_s,
            max_retries=max_retries,
            retry_backoff_s=retry_backoff_s,
            coordinate_precision=coordinate_precision,
            time_zone_url=_str(
                raw.get("time_zone_url", "https://api.open-meteo.com/v1/forecast"),
                "enrichment.time_zone_url",
            ),
            summary_url=_str(
                raw.get("summary_url", "https://en.wikipedia.org/api/rest_v1/page/summary/"),
                "enrichment.summary_url",
            ),
            max_workers=max_workers,
        )

    @classmethod
    def default(cls) -> EnrichmentConfig:
        return cls.from_mapping({})


@dataclass(frozen=True, slots=True)
class GlobeConfig:
    shell_radius: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> GlobeConfig:
        shell_radius = _float(raw.get("shell_radius", 1.002), "globe.shell_radius")
        if shell_radius <= 0:
            raise ValueError("globe.shell_radius must be > 0")
        return cls(shell_radius=shell_radius)

    @classmethod
    def default(cls) -> GlobeConfig:
        return cls(shell_radius=1.002)


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    paths: PathsConfig
    dataset: DatasetConfig
    enrichment: EnrichmentConfig
    globe: GlobeConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        dataset_raw = raw.get("dataset")
        enrichment_raw = raw.get("enrichment")
        globe_raw = raw.get("globe")
        return cls(
            source_path=source_path.resolve(),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            dataset=(
                DatasetConfig.default()
                if dataset_raw is None
                else DatasetConfig.from_mapping(_mapping(dataset_raw, "dataset"))
            ),
            enrichment=(
                EnrichmentConfig.default()
                if enrichment_raw is None
                else EnrichmentConfig.from_mapping(_mapping(enrichment_raw, "enrichment"))
            ),
            globe=(
                GlobeConfig.default()
                if globe_raw is None
                else GlobeConfig.from_mapping(_mapping(globe_raw, "globe"))
            ),
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
