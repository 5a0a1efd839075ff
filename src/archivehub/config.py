from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .urls import base_url

APP = "archivehub"

logger = logging.getLogger(__name__)


def config_dir() -> Path:
    """
    Cross-platform config directory:
      - Windows: %APPDATA%\\archivehub
      - macOS/Linux: $XDG_CONFIG_HOME/archivehub or ~/.config/archivehub
    """
    if os.name == "nt":
        base = os.environ.get("APPDATA") or str(Path.home())
        return Path(base) / APP
    return Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))) / APP


def config_path() -> Path:
    return config_dir() / "config.json"


@dataclass
class Settings:
    primary_url: str = "http://127.0.0.1:3000"
    remote_url: str = ""                  # empty = no upstream catalog
    local_roots: List[str] = field(default_factory=list)
    install_root: str = ""                # empty = first local root
    timeout_s: float = 30.0

    @property
    def has_remote(self) -> bool:
        return bool(self.remote_url)

    def resolved_install_root(self) -> Optional[Path]:
        if self.install_root:
            return Path(self.install_root).expanduser()
        if self.local_roots:
            return Path(self.local_roots[0]).expanduser()
        return None

    @staticmethod
    def load(path: Optional[Path] = None) -> "Settings":
        path = path or config_path()

        data: dict = {}

        if path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning("Ignoring unreadable config %s: %s", path, e)
                data = {}

        roots = data.get("local_roots", [])
        if not isinstance(roots, list):
            roots = []

        s = Settings(
            primary_url=str(data.get("primary_url", Settings.primary_url)),
            remote_url=str(data.get("remote_url", Settings.remote_url) or ""),
            local_roots=[str(r) for r in roots],
            install_root=str(data.get("install_root", Settings.install_root) or ""),
            timeout_s=float(data.get("timeout_s", Settings.timeout_s)),
        )

        # Environment overrides (highest priority)
        s.primary_url = os.environ.get("ARCHIVEHUB_PRIMARY_URL", s.primary_url)
        s.remote_url = os.environ.get("ARCHIVEHUB_REMOTE_URL", s.remote_url)
        env_roots = os.environ.get("ARCHIVEHUB_LOCAL_ROOTS")
        if env_roots:
            s.local_roots = [r for r in env_roots.split(os.pathsep) if r]
        env_timeout = os.environ.get("ARCHIVEHUB_TIMEOUT")
        if env_timeout:
            try:
                s.timeout_s = float(env_timeout)
            except ValueError:
                logger.warning("Ignoring invalid ARCHIVEHUB_TIMEOUT=%r", env_timeout)

        s.primary_url = base_url(s.primary_url)
        s.remote_url = base_url(s.remote_url)

        return s

    def save(self, path: Optional[Path] = None) -> Path:
        path = path or config_path()
        path.parent.mkdir(parents=True, exist_ok=True)

        payload = {
            "primary_url": self.primary_url,
            "remote_url": self.remote_url,
            "local_roots": self.local_roots,
            "install_root": self.install_root,
            "timeout_s": self.timeout_s,
        }
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return path
