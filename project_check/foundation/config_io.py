from __future__ import annotations

import os
from pathlib import Path
from collections.abc import Mapping
from typing import Any

import yaml

CONFIG_ENV_VAR = "PROJECT_CHECK_CONFIG"
REPO_ROOT_MARKERS = ("pyproject.toml", "Cargo.toml", ".git")


def find_repo_root(start: str | os.PathLike[str] | None = None) -> str:
    start_path = Path(start or os.getcwd()).resolve()
    if start_path.is_file():
        start_path = start_path.parent

    for candidate in (start_path, *start_path.parents):
        for marker in REPO_ROOT_MARKERS:
            if (candidate / marker).exists():
                return str(candidate)

    raise FileNotFoundError(
        "Cannot locate repo root: searched from "
        f"{start_path} for {', '.join(REPO_ROOT_MARKERS)}"
    )


def _load_yaml_mapping(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except FileNotFoundError:
        raise
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"Config file must contain a YAML mapping: {path}")
    return dict(payload)


def _deep_merge(base: Any, overlay: Any, *, path: str) -> Any:
    if overlay is None:
        return None

    if base is None:
        return overlay

    if isinstance(base, Mapping):
        if not isinstance(overlay, Mapping):
            raise ValueError(
                f"Invalid config overlay merge at {path}: base is mapping but overlay is {type(overlay).__name__}"
            )
        merged: dict[str, Any] = dict(base)
        for key, overlay_value in overlay.items():
            next_path = f"{path}.{key}" if path else str(key)
            if key in base:
                merged[key] = _deep_merge(base[key], overlay_value, path=next_path)
            else:
                merged[key] = overlay_value
        return merged

    if isinstance(base, (list, tuple)):
        if not isinstance(overlay, (list, tuple)):
            raise ValueError(
                f"Invalid config overlay merge at {path}: base is list but overlay is {type(overlay).__name__}"
            )
        # Lists (notably `stages`) are replaced wholesale, never spliced.
        return list(overlay)

    if isinstance(overlay, (Mapping, list, tuple)):
        raise ValueError(
            f"Invalid config overlay merge at {path}: base is {type(base).__name__} but overlay is {type(overlay).__name__}"
        )

    return overlay


def load_config(
    *,
    config_path: str | None = None,
    env_var: str = CONFIG_ENV_VAR,
    config_rel_path: str = "config",
    config_name: str = "check",
    start_dir: str | None = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Load the check configuration, returning (cfg_dict, meta).

    meta["mode"] is one of: explicit, env, base, base+local, default. "default" means no
    config file was found and the caller should fall back to the built-in stage catalog.
    meta["base_dir"] is the directory relative paths in the config resolve against:
    the explicit file's directory, else the repo root, else the working directory.
    """

    explicit_path = None
    if config_path is not None:
        explicit_path = str(config_path).strip() or None
    elif env_var:
        raw_env = os.environ.get(str(env_var), "")
        explicit_path = raw_env.strip() or None

    # Env override (or explicit config_path) loads a single file (no local overlay).
    if explicit_path:
        expanded = os.path.abspath(os.path.expandvars(os.path.expanduser(explicit_path)))
        if not os.path.isfile(expanded):
            raise FileNotFoundError(f"Config file not found: {expanded}")
        cfg = _load_yaml_mapping(expanded)
        meta = {
            "mode": "explicit" if config_path is not None else "env",
            "paths": [expanded],
            "env_var": env_var,
            "repo_root": None,
            "base_dir": os.path.dirname(expanded),
        }
        return cfg, meta

    if os.path.isabs(str(config_rel_path)):
        config_directory = str(config_rel_path)
        repo_root = None
    else:
        try:
            repo_root = find_repo_root(start_dir)
        except FileNotFoundError:
            repo_root = None
        config_directory = (
            os.path.join(repo_root, str(config_rel_path)) if repo_root is not None else None
        )

    cwd = os.path.abspath(start_dir or os.getcwd())
    if config_directory is None:
        return {}, {
            "mode": "default",
            "paths": [],
            "env_var": env_var,
            "repo_root": None,
            "base_dir": cwd,
        }

    base_config_path = os.path.join(config_directory, config_name + ".yaml")
    local_overlay_path = os.path.join(config_directory, config_name + ".local.yaml")

    if not os.path.exists(base_config_path):
        return {}, {
            "mode": "default",
            "paths": [],
            "env_var": env_var,
            "repo_root": repo_root,
            "base_dir": repo_root or cwd,
        }

    cfg = _load_yaml_mapping(base_config_path)
    loaded_paths = [os.path.abspath(base_config_path)]
    mode = "base"

    if os.path.exists(local_overlay_path):
        overlay = _load_yaml_mapping(local_overlay_path)
        cfg = _deep_merge(cfg, overlay, path="")
        loaded_paths.append(os.path.abspath(local_overlay_path))
        mode = "base+local"

    meta = {
        "mode": mode,
        "paths": loaded_paths,
        "env_var": env_var,
        "repo_root": repo_root,
        "base_dir": repo_root or os.path.abspath(config_directory),
    }
    return cfg, meta
