"""
Supervised handle for the tunnel provider's external process.

The provider is started detached from the orchestrating process so that it
outlives a short-lived run. The handle keeps a reference for health checks
but does not own the process lifetime: stopping is by process name and
also reaches a provider started by an earlier run.
"""

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def provider_config_paths() -> list[Path]:
    """Locations where the provider stores its agent configuration."""
    home = Path.home()
    paths = [
        home / ".config" / "ngrok" / "ngrok.yml",
        home / "Library" / "Application Support" / "ngrok" / "ngrok.yml",
        home / ".ngrok2" / "ngrok.yml",
    ]
    local_app_data = os.environ.get("LOCALAPPDATA")
    if local_app_data:
        paths.append(Path(local_app_data) / "ngrok" / "ngrok.yml")
    return paths


def install_command() -> str:
    """Suggested command for installing the provider on this platform."""
    if sys.platform == "win32":
        return "winget install --id Ngrok.Ngrok -e"
    if sys.platform == "darwin":
        return "brew install ngrok"
    return "npm install -g ngrok"


class TunnelProcess:
    """
    Wraps the tunnel provider's command-line agent.

    Operations never raise for an absent process; launch raises OSError if
    the executable cannot be started.
    """

    def __init__(self, executable: str = "ngrok"):
        """
        Initialize the handle.

        Args:
            executable: Provider executable name or full path
        """
        self.executable = executable
        self.process_name = Path(executable).stem
        self._process: subprocess.Popen | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    def find_executable(self) -> str | None:
        """Resolve the executable on PATH (or as a direct path)."""
        return shutil.which(self.executable)

    def is_authenticated(self) -> bool:
        """Check whether the provider already holds an auth token."""
        if os.environ.get("NGROK_AUTHTOKEN"):
            return True
        for path in provider_config_paths():
            try:
                if path.exists() and "authtoken:" in path.read_text(encoding="utf-8"):
                    return True
            except OSError:
                continue
        return False

    def add_authtoken(self, token: str) -> bool:
        """
        Register an auth token with the provider.

        Returns:
            True if the provider accepted the token
        """
        try:
            result = subprocess.run(
                [self.executable, "config", "add-authtoken", token],
                capture_output=True,
                text=True,
                timeout=30,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error(f"Failed to run {self.executable}: {e}")
            return False

        if result.returncode != 0:
            logger.error(f"Tunnel provider rejected auth token: {result.stderr.strip()}")
            return False
        return True

    def launch(self, port: int) -> None:
        """
        Start the provider detached, forwarding HTTP traffic to `port`.

        Raises:
            OSError: If the executable cannot be started
        """
        kwargs: dict = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = (
                subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
            )
        else:
            kwargs["start_new_session"] = True

        self._process = subprocess.Popen(
            [self.executable, "http", str(port)],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            **kwargs,
        )
        logger.info(f"Launched tunnel provider (pid {self._process.pid}) for port {port}")

    def is_running(self) -> bool:
        """Check whether a provider process is alive, launched by us or not."""
        if self._process is not None and self._process.poll() is None:
            return True

        if sys.platform == "win32":
            args = ["tasklist", "/FI", f"IMAGENAME eq {self.process_name}.exe"]
        else:
            args = ["pgrep", "-x", self.process_name]
        try:
            result = subprocess.run(args, capture_output=True, text=True, timeout=10)
        except (OSError, subprocess.TimeoutExpired):
            return False

        if sys.platform == "win32":
            return self.process_name.lower() in result.stdout.lower()
        return result.returncode == 0

    def stop(self) -> bool:
        """
        Terminate provider processes by name.

        Returns:
            True if a process was terminated. No running process is not an
            error.
        """
        if sys.platform == "win32":
            args = ["taskkill", "/F", "/IM", f"{self.process_name}.exe"]
        else:
            args = ["pkill", "-x", self.process_name]
        try:
            result = subprocess.run(args, capture_output=True, text=True, timeout=10)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Could not stop tunnel provider: {e}")
            return False

        self._process = None
        return result.returncode == 0
