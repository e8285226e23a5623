import os

import pytest

from project_check.foundation.config_io import find_repo_root, load_config

ENV_VAR = "TEST_PROJECT_CHECK_CONFIG"


def _repo(tmp_path):
    (tmp_path / "Cargo.toml").write_text("[package]\nname = 'demo'\n", encoding="utf-8")
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


def test_find_repo_root_walks_up_to_marker(tmp_path):
    _repo(tmp_path)
    nested = tmp_path / "src" / "deep"
    nested.mkdir(parents=True)

    assert find_repo_root(str(nested)) == str(tmp_path.resolve())


def test_no_config_file_means_default_mode(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    _repo(tmp_path)

    cfg, meta = load_config(env_var=ENV_VAR, start_dir=str(tmp_path))

    assert cfg == {}
    assert meta["mode"] == "default"
    assert meta["paths"] == []
    assert meta["base_dir"] == str(tmp_path.resolve())


def test_base_plus_local_overlay(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    config_dir = _repo(tmp_path)
    (config_dir / "check.yaml").write_text(
        "run:\n  mode: parity\n  timeout_s: 60\nstages:\n  - {name: test, command: [cargo, test]}\n",
        encoding="utf-8",
    )
    (config_dir / "check.local.yaml").write_text(
        "run:\n  mode: aggregate\nstages:\n  - {name: unit, command: [pytest]}\n",
        encoding="utf-8",
    )

    cfg, meta = load_config(env_var=ENV_VAR, start_dir=str(tmp_path))

    assert cfg["run"] == {"mode": "aggregate", "timeout_s": 60}
    assert cfg["stages"] == [{"name": "unit", "command": ["pytest"]}]
    assert meta["mode"] == "base+local"
    assert len(meta["paths"]) == 2
    assert meta["base_dir"] == str(tmp_path.resolve())


def test_overlay_type_mismatch_raises(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    config_dir = _repo(tmp_path)
    (config_dir / "check.yaml").write_text("run:\n  mode: parity\n", encoding="utf-8")
    (config_dir / "check.local.yaml").write_text("run: [1, 2]\n", encoding="utf-8")

    with pytest.raises(ValueError, match=r"Invalid config overlay merge at run"):
        load_config(env_var=ENV_VAR, start_dir=str(tmp_path))


def test_invalid_yaml_names_the_file(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    config_dir = _repo(tmp_path)
    (config_dir / "check.yaml").write_text("stages: [\n", encoding="utf-8")

    with pytest.raises(ValueError) as excinfo:
        load_config(env_var=ENV_VAR, start_dir=str(tmp_path))

    assert "check.yaml" in str(excinfo.value)


def test_env_override_loads_single_file(tmp_path, monkeypatch):
    config_dir = _repo(tmp_path)
    (config_dir / "check.yaml").write_text("run: {mode: parity}\n", encoding="utf-8")
    env_path = tmp_path / "elsewhere" / "ci.yaml"
    env_path.parent.mkdir()
    env_path.write_text("run: {mode: aggregate}\n", encoding="utf-8")

    monkeypatch.setenv(ENV_VAR, str(env_path))
    cfg, meta = load_config(env_var=ENV_VAR, start_dir=str(tmp_path))

    assert cfg == {"run": {"mode": "aggregate"}}
    assert meta["mode"] == "env"
    assert meta["paths"] == [os.path.abspath(str(env_path))]
    assert meta["base_dir"] == os.path.abspath(str(env_path.parent))


def test_explicit_missing_path_raises(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)

    with pytest.raises(FileNotFoundError, match="Config file not found"):
        load_config(config_path=str(tmp_path / "nope.yaml"), env_var=ENV_VAR)


def test_non_mapping_document_raises(tmp_path, monkeypatch):
    monkeypatch.delenv(ENV_VAR, raising=False)
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ValueError, match="must contain a YAML mapping"):
        load_config(config_path=str(path), env_var=ENV_VAR)
