import json
from pathlib import Path

import pytest

from sab.errors import ConfigError
from sab.presets import AGGRESSIVE_POLICY, CLEANUP_PHASES, apply_preset
from sab.settings import EncodeParams, Policy, RunConfig, load_config


def test_policy_normalizes_jpg_and_is_read_only():
    policy = Policy({"JPG": EncodeParams(quality=70)})

    assert list(policy) == ["jpeg"]
    assert policy["jpeg"].quality == 70
    assert policy.get("png") is None
    with pytest.raises(TypeError):
        policy["png"] = EncodeParams()


def test_policy_rejects_unknown_formats():
    with pytest.raises(ConfigError):
        Policy({"bmp": EncodeParams()})


@pytest.mark.parametrize("kwargs", [{"quality": 101}, {"quality": -1}, {"max_width": 0}])
def test_encode_params_validation(kwargs):
    with pytest.raises(ConfigError):
        EncodeParams(**kwargs)


def test_load_config(tmp_path):
    cfg = tmp_path / "sab.json"
    cfg.write_text(
        json.dumps(
            {
                "remove_dirs": ["static/images/temp"],
                "deletion_phases": [
                    {"name": "images", "root": "static/images", "max_bytes": 102400},
                    {"root": "static/assets", "max_bytes": 204800, "images_only": False},
                ],
                "optimize": {
                    "roots": ["static/images"],
                    "policy": {"jpg": {"quality": 75, "max_width": 800, "max_height": 800}},
                    "convert_to": "avif",
                    "convert_from": ["jpg"],
                    "max_ratio": 0.5,
                    "workers": 4,
                },
            }
        ),
        encoding="utf-8",
    )

    config = load_config(cfg, tmp_path)

    assert config.project_root == tmp_path
    assert config.remove_dirs == ("static/images/temp",)
    assert config.deletion_phases[1].name == "static/assets"
    assert config.deletion_phases[1].images_only is False
    assert config.optimize.policy["jpeg"] == EncodeParams(quality=75, max_width=800, max_height=800)
    assert config.optimize.convert_to == "avif"
    assert config.optimize.convert_from == frozenset({"jpeg"})
    assert config.optimize.max_ratio == 0.5
    assert config.optimize.workers == 4
    assert config.optimize.roots == (Path("static/images"),)


@pytest.mark.parametrize(
    "data",
    [
        "not json",
        "[1, 2]",
        json.dumps({"deletion_phases": [{"root": "x"}]}),
        json.dumps({"optimize": {"policy": {"png": {"qualty": 3}}}}),
        json.dumps({"optimize": {"convert_to": "tiff"}}),
        json.dumps({"optimize": {"max_ratio": 1.5}}),
        json.dumps({"optimize": {"workers": 0}}),
    ],
)
def test_bad_config_raises_config_error(tmp_path, data):
    cfg = tmp_path / "bad.json"
    cfg.write_text(data, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(cfg, tmp_path)


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "nope.json", tmp_path)


def test_presets_keep_project_root(tmp_path):
    base = RunConfig(project_root=tmp_path)

    full = apply_preset("full", base)
    cleanup = apply_preset("CLEANUP", base)

    assert full.project_root == tmp_path
    assert full.deletion_phases == CLEANUP_PHASES
    assert full.optimize.policy is AGGRESSIVE_POLICY
    assert "local-fonts" in full.remove_dirs
    assert cleanup.optimize is None

    with pytest.raises(ValueError):
        apply_preset("nope", base)
