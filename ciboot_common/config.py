"""
Configuration for a provisioning run.

Two sources are combined into one context object that is loaded once at
process start and passed to every component that needs it:

- Settings: connection details read from environment variables.
- ConfigStore: persisted user preferences (saved tunnel token, Docker Hub
  and GitHub credentials) in a single JSON document.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".ciboot" / "config.json"

# Keys of the persisted JSON document
TUNNEL_AUTH_TOKEN = "tunnel_auth_token"
DOCKER_HUB_USERNAME = "docker_hub_username"
DOCKER_HUB_PASSWORD = "docker_hub_password"
GITHUB_USERNAME = "github_username"
GITHUB_TOKEN = "github_token"

SECRET_KEYS = {TUNNEL_AUTH_TOKEN, DOCKER_HUB_PASSWORD, GITHUB_TOKEN}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw}, using default {default}")
        return default
    if value <= 0:
        logger.warning(f"Invalid {name}={value}, using default {default}")
        return default
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw}, using default {default}")
        return default
    if value < 0:
        logger.warning(f"Invalid {name}={value}, using default {default}")
        return default
    return value


@dataclass
class Settings:
    """
    Connection details for the control plane, the tunnel provider and the
    hosting platform.

    Environment variables:
    - CIBOOT_JENKINS_URL: Control plane base URL (default: http://localhost:8080)
    - CIBOOT_JENKINS_USER / CIBOOT_JENKINS_PASSWORD: Admin credentials (default: admin/admin)
    - CIBOOT_JENKINS_PORT: Local port the tunnel exposes (default: 8080)
    - CIBOOT_READY_ATTEMPTS / CIBOOT_READY_INTERVAL: Readiness polling (default: 30 x 1.0s)
    - CIBOOT_TUNNEL_API_URL: Tunnel provider status endpoint
    - CIBOOT_NGROK_PATH: Tunnel provider executable (default: ngrok)
    - CIBOOT_COMPOSE_DIR: Directory holding the control plane's docker-compose.yml
    - CIBOOT_CONTAINER_NAME: Control plane container name (default: jenkins)
    - CIBOOT_GITHUB_API_URL: Hosting platform API (default: https://api.github.com)
    """

    jenkins_url: str = "http://localhost:8080"
    jenkins_user: str = "admin"
    jenkins_password: str = "admin"
    jenkins_port: int = 8080
    ready_attempts: int = 30
    ready_interval: float = 1.0
    tunnel_api_url: str = "http://127.0.0.1:4040/api/tunnels"
    ngrok_path: str = "ngrok"
    compose_dir: Path = field(default_factory=lambda: Path.cwd() / "Jenkins")
    container_name: str = "jenkins"
    github_api_url: str = "https://api.github.com"

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the environment, falling back to defaults."""
        defaults = cls()
        return cls(
            jenkins_url=os.environ.get("CIBOOT_JENKINS_URL", defaults.jenkins_url),
            jenkins_user=os.environ.get("CIBOOT_JENKINS_USER", defaults.jenkins_user),
            jenkins_password=os.environ.get(
                "CIBOOT_JENKINS_PASSWORD", defaults.jenkins_password
            ),
            jenkins_port=_env_int("CIBOOT_JENKINS_PORT", defaults.jenkins_port),
            ready_attempts=_env_int("CIBOOT_READY_ATTEMPTS", defaults.ready_attempts),
            ready_interval=_env_float("CIBOOT_READY_INTERVAL", defaults.ready_interval),
            tunnel_api_url=os.environ.get(
                "CIBOOT_TUNNEL_API_URL", defaults.tunnel_api_url
            ),
            ngrok_path=os.environ.get("CIBOOT_NGROK_PATH", defaults.ngrok_path),
            compose_dir=Path(
                os.environ.get("CIBOOT_COMPOSE_DIR", str(defaults.compose_dir))
            ),
            container_name=os.environ.get(
                "CIBOOT_CONTAINER_NAME", defaults.container_name
            ),
            github_api_url=os.environ.get(
                "CIBOOT_GITHUB_API_URL", defaults.github_api_url
            ),
        )


def get_config_path() -> Path:
    """Get the config file path from CIBOOT_CONFIG_PATH or use the default."""
    override = os.environ.get("CIBOOT_CONFIG_PATH")
    return Path(override) if override else DEFAULT_CONFIG_PATH


class ConfigStore:
    """
    Persisted user preferences backed by a single JSON document.

    The document is read once when the store is loaded. Writes update the
    in-memory copy and the file together; the file is never re-read
    mid-run. The file and its directory are created on first write.
    """

    def __init__(self, path: Path, data: dict[str, Any] | None = None):
        self.path = path
        self._data: dict[str, Any] = dict(data or {})

    @classmethod
    def load(cls, path: Path | None = None) -> "ConfigStore":
        """
        Load the store from disk.

        A missing file yields an empty store. An unreadable or malformed
        file is reported and also yields an empty store.
        """
        path = path or get_config_path()
        data: dict[str, Any] = {}
        if path.exists():
            try:
                loaded = json.loads(path.read_text(encoding="utf-8"))
                if isinstance(loaded, dict):
                    data = loaded
                else:
                    logger.warning(f"Ignoring config {path}: not a JSON object")
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Could not load config {path}: {e}")
        return cls(path, data)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.save()

    def unset(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)
        self.save()

    def clear(self) -> None:
        self._data = {}
        self.save()

    def as_dict(self, reveal: bool = False) -> dict[str, Any]:
        """Return a copy of the stored values, masking secrets unless reveal is set."""
        if reveal:
            return dict(self._data)
        return {
            key: ("********" if key in SECRET_KEYS and value else value)
            for key, value in self._data.items()
        }

    def save(self) -> None:
        """
        Write the document to disk.

        Raises:
            OSError: If the file cannot be written
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")

    # Typed accessors for the known keys

    @property
    def tunnel_auth_token(self) -> str:
        return self.get(TUNNEL_AUTH_TOKEN) or ""

    def save_tunnel_auth_token(self, token: str) -> None:
        self.set(TUNNEL_AUTH_TOKEN, token)

    def docker_hub_credentials(self) -> tuple[str, str]:
        return self.get(DOCKER_HUB_USERNAME) or "", self.get(DOCKER_HUB_PASSWORD) or ""

    def save_docker_hub_credentials(self, username: str, password: str) -> None:
        self._data[DOCKER_HUB_USERNAME] = username
        self._data[DOCKER_HUB_PASSWORD] = password
        self.save()

    def has_docker_hub_credentials(self) -> bool:
        username, password = self.docker_hub_credentials()
        return bool(username and password)

    def clear_docker_hub_credentials(self) -> None:
        self.unset(DOCKER_HUB_USERNAME, DOCKER_HUB_PASSWORD)

    def github_credentials(self) -> tuple[str, str]:
        return self.get(GITHUB_USERNAME) or "", self.get(GITHUB_TOKEN) or ""

    def save_github_credentials(self, username: str, token: str) -> None:
        self._data[GITHUB_USERNAME] = username
        self._data[GITHUB_TOKEN] = token
        self.save()

    def clear_github_credentials(self) -> None:
        self.unset(GITHUB_USERNAME, GITHUB_TOKEN)


@dataclass
class BootstrapContext:
    """Everything a run needs, loaded once at process start."""

    settings: Settings
    store: ConfigStore

    @classmethod
    def load(cls) -> "BootstrapContext":
        return cls(settings=Settings.from_env(), store=ConfigStore.load())

    def github_token(self) -> str | None:
        """
        Resolve the hosting platform token.

        Priority: saved config, then GITHUB_TOKEN, then GH_TOKEN.
        """
        _, token = self.store.github_credentials()
        return token or os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")
