"""Environment loading helpers.

VIBECHANNEL_* settings can live in dotenv files as well as in the process
environment:

  process environment > VIBECHANNEL_ENV_FILE > project .env / .env.local > user .env

Values already exported in the shell are never overwritten. Later files in
the chain override values that came from earlier files.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from dotenv import dotenv_values


def _read_env(path: Path) -> dict[str, str]:
    if not path.is_file():
        return {}
    return {
        str(key): str(value)
        for key, value in dotenv_values(path).items()
        if key is not None and value is not None
    }


def default_env_paths(project_dir: Path) -> list[Path]:
    """Dotenv files consulted for a repository, lowest precedence first."""
    xdg_home = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
    paths = [
        xdg_home / "vibechannel" / ".env",
        project_dir / ".env",
        project_dir / ".env.local",
    ]
    if explicit := os.environ.get("VIBECHANNEL_ENV_FILE"):
        paths.append(Path(explicit))
    return paths


def load_layered_env(
    *,
    project_dir: Path | None = None,
    env_paths: Iterable[Path] | None = None,
) -> dict[str, str]:
    """Load dotenv files into os.environ.

    Args:
        project_dir: repository root used for the default paths (defaults to cwd)
        env_paths: explicit files to load instead, lowest precedence first

    Returns:
        The keys and values that were set.
    """
    if env_paths is None:
        env_paths = default_env_paths(project_dir or Path.cwd())

    preexisting = set(os.environ)
    applied: dict[str, str] = {}
    for path in env_paths:
        for key, value in _read_env(Path(path)).items():
            if key in preexisting:
                continue
            os.environ[key] = value
            applied[key] = value
    return applied
