from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from skypath.config import load_config
from skypath.sdk import analyze_from_config


def _write_inputs(root: Path) -> None:
    # two unit triangles 40 apart on the z = 0 plane, normals +z
    verts = []
    for cx in (-20.0, 20.0):
        verts += [cx - 1.0, -1.0, 0.0, cx + 1.0, -1.0, 0.0, cx, 1.0, 0.0]
    (root / "site.json").write_text(json.dumps({"vertices": verts}), encoding="utf-8")
    points = [
        {"x": -20.0, "y": 0.0, "z": 10.0, "normal": {"x": 0.0, "y": 0.0, "z": -1.0}},
        {"x": 20.0, "y": 0.0, "z": 10.0, "normal": {"x": 0.0, "y": 0.0, "z": -1.0}},
    ]
    (root / "flight.json").write_text(json.dumps({"points": points}), encoding="utf-8")


def _write_config(path: Path, output_name: str | None = "report.json") -> None:
    config = {
        "mesh": {"path": "site.json"},
        "path": {"path": "flight.json"},
        "engine": {"voxel_resolution": 16},
        "analyses": ["coverage", "incremental", "viewpoints", "collisions"],
    }
    if output_name is not None:
        config["output"] = {"path": output_name}
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f)


def test_analyze_from_config_path(tmp_path: Path) -> None:
    _write_inputs(tmp_path)
    cfg_path = tmp_path / "scenario.yaml"
    _write_config(cfg_path)

    result = analyze_from_config(cfg_path)
    report = result.report
    assert result.output_path == (tmp_path / "report.json").resolve()
    assert result.output_path.exists()

    assert report.waypoint_count == 2
    assert report.face_count == 2
    assert report.path_length == pytest.approx(40.0)
    assert report.coverage is not None
    assert report.coverage.coverage == pytest.approx(100.0)
    assert report.coverage.overlap == 0.0
    assert report.incremental == pytest.approx({1: 50.0, 2: 100.0})
    assert [vp.coverage for vp in report.viewpoints] == pytest.approx([50.0, 50.0])
    assert report.viewpoints[1].overlap_with_previous == 0.0
    assert report.collisions is not None
    assert not report.collisions.has_collision

    written = json.loads(result.output_path.read_text(encoding="utf-8"))
    assert written["coverage"]["coverage"] == pytest.approx(100.0)


def test_analyze_from_loaded_config_with_overrides(tmp_path: Path) -> None:
    _write_inputs(tmp_path)
    cfg_path = tmp_path / "scenario.yaml"
    _write_config(cfg_path)
    cfg = load_config(cfg_path)

    out = tmp_path / "reports" / "only_collisions.yaml"
    result = analyze_from_config(cfg, output=out, analyses=["collisions"], workers=2)
    assert result.output_path == out.resolve()
    assert result.config.output.format == "yaml"
    assert result.config.engine.workers == 2
    assert result.report.coverage is None
    assert result.report.incremental is None
    assert result.report.collisions is not None
    # the caller's config object is left untouched
    assert cfg.analyses == ["coverage", "incremental", "viewpoints", "collisions"]
    assert yaml.safe_load(out.read_text(encoding="utf-8"))["coverage"] is None


def test_analyze_without_output(tmp_path: Path) -> None:
    _write_inputs(tmp_path)
    cfg_path = tmp_path / "scenario.yaml"
    _write_config(cfg_path, output_name=None)
    result = analyze_from_config(cfg_path, analyses=["coverage"])
    assert result.output_path is None
    assert result.report.coverage.coverage == pytest.approx(100.0)


def test_analyze_rejects_bad_overrides(tmp_path: Path) -> None:
    _write_inputs(tmp_path)
    cfg_path = tmp_path / "scenario.yaml"
    _write_config(cfg_path)
    with pytest.raises(ValueError):
        analyze_from_config(cfg_path, output=tmp_path / "report.las")
    with pytest.raises(ValueError):
        analyze_from_config(cfg_path, workers=0)
    with pytest.raises(ValueError):
        analyze_from_config(cfg_path, analyses=[])
