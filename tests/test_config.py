from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from globepick.config import load_config


def _write(tmp_path: Path, raw: object) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(raw), encoding="utf-8")
    return path


def test_repository_config_loads():
    cfg = load_config(Path(__file__).resolve().parents[1] / "config.yaml")
    assert cfg.paths.dataset.name == "countries.sample.geo.json"
    assert cfg.paths.dataset.exists()
    assert cfg.dataset.format == "geojson"
    assert cfg.enrichment.coordinate_precision == 2
    assert cfg.globe.shell_radius == pytest.approx(1.002)


def test_minimal_config_uses_defaults(tmp_path):
    cfg = load_config(_write(tmp_path, {"paths": {"dataset": "data/world.geo.json"}}))
    assert cfg.paths.dataset == tmp_path.resolve() / "data" / "world.geo.json"
    assert cfg.paths.logs_dir == tmp_path.resolve() / "logs"
    assert cfg.dataset.name_fields == ("name", "NAME", "ADMIN", "name_en")
    assert not cfg.dataset.check_overlaps
    assert cfg.enrichment.max_retries == 2
    assert cfg.enrichment.time_zone_url == "https://api.open-meteo.com/v1/forecast"
    assert cfg.globe.shell_radius == pytest.approx(1.002)


def test_absolute_dataset_path_is_kept(tmp_path):
    dataset = tmp_path / "elsewhere" / "countries.geo.json"
    cfg = load_config(_write(tmp_path, {"paths": {"dataset": str(dataset)}}))
    assert cfg.paths.dataset == dataset


@pytest.mark.parametrize(
    "raw",
    [
        {},
        {"paths": {"dataset": ""}},
        {"paths": {"dataset": "x.json"}, "dataset": {"format": "kml"}},
        {"paths": {"dataset": "x.json"}, "dataset": {"check_overlaps": "yes"}},
        {"paths": {"dataset": "x.json"}, "enrichment": {"max_retries": -1}},
        {"paths": {"dataset": "x.json"}, "enrichment": {"coordinate_precision": 9}},
        {"paths": {"dataset": "x.json"}, "enrichment": {"request_timeout_s": 0}},
        {"paths": {"dataset": "x.json"}, "enrichment": {"max_workers": True}},
        {"paths": {"dataset": "x.json"}, "globe": {"shell_radius": -1}},
        {"paths": {"dataset": "x.json"}, "globe": []},
    ],
)
def test_invalid_config_rejected(tmp_path, raw):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, raw))


def test_non_mapping_config_rejected(tmp_path):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, ["not", "a", "mapping"]))


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")
