"""Environment file loading.

Settings can live in .env files next to the content tree:
- OS environment (highest precedence)
- project env files (.env, .env.local)
- user env file (~/.config/canonsync/.env)

Only CANONSYNC_* keys are imported. A key already present in the process
environment is never overwritten.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

ENV_PREFIX = "CANONSYNC_"


def _read_env(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}
    out: dict[str, str] = {}
    for k, v in dotenv_values(path).items():
        if k is None or v is None or not k.startswith(ENV_PREFIX):
            continue
        out[k] = v
    return out


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> set[str]:
    """Load CANONSYNC_* variables from user + project .env files.

    Args:
        project_dir: base directory for project env paths (defaults to cwd)
        user_env_paths: explicit user env file paths
        project_env_paths: explicit project env file paths

    Returns:
        Names of the variables this call set.
    """
    if project_dir is None:
        project_dir = Path.cwd()

    if user_env_paths is None:
        xdg_home = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
        user_env_paths = [xdg_home / "canonsync" / ".env"]

    if project_env_paths is None:
        project_env_paths = [project_dir / ".env", project_dir / ".env.local"]

    applied: set[str] = set()
    for layer in (user_env_paths, project_env_paths):
        for p in layer:
            for k, v in _read_env(Path(p)).items():
                # Later layers may replace what an earlier file set, never the OS env.
                if k not in os.environ or k in applied:
                    os.environ[k] = v
                    applied.add(k)

    if applied:
        logger.debug("Loaded %d variables from env files", len(applied))
    return applied
