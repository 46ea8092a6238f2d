"""
Container runtime wrapper for the control plane's host container.

This module provides a thin abstraction over the docker CLI for bringing
the control plane up with Docker Compose, checking whether it is running
and reading its bootstrap secrets.
"""

import logging
import subprocess
import time
from pathlib import Path

import requests

from ciboot_common.models import ControlPlaneStart

logger = logging.getLogger(__name__)

COMPOSE_FILE = "docker-compose.yml"
INITIAL_PASSWORD_PATH = "/var/jenkins_home/secrets/initialAdminPassword"


class ContainerRuntime:
    """
    Manages the Docker container hosting the control plane.

    Queries (is_docker_available, is_control_plane_running,
    initial_admin_password) never raise; start and stop raise RuntimeError
    on failure.
    """

    def __init__(
        self,
        compose_dir: Path,
        container_name: str = "jenkins",
        base_url: str = "http://localhost:8080",
        compose_command: tuple[str, ...] = ("docker", "compose"),
    ):
        """
        Initialize the container runtime.

        Args:
            compose_dir: Directory containing the control plane's docker-compose.yml
            container_name: Name of the control plane container
            base_url: URL the control plane answers on once started
            compose_command: Command prefix for Docker Compose
        """
        self.compose_dir = Path(compose_dir)
        self.container_name = container_name
        self.base_url = base_url.rstrip("/")
        self.compose_command = list(compose_command)

    def _run(self, args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess:
        return subprocess.run(args, capture_output=True, text=True, cwd=cwd)

    def is_docker_available(self) -> bool:
        """Check that the Docker daemon answers."""
        try:
            return self._run(["docker", "info"]).returncode == 0
        except OSError:
            return False

    def is_control_plane_running(self) -> bool:
        """Check whether the control plane container is running."""
        try:
            result = self._run(
                [
                    "docker",
                    "ps",
                    "--filter",
                    f"name={self.container_name}",
                    "--format",
                    "{{.Names}}",
                ]
            )
        except OSError:
            return False
        if result.returncode != 0:
            return False
        return self.container_name in result.stdout.split()

    def wait_for_login(self, max_attempts: int = 180, interval: float = 1.0) -> bool:
        """
        Wait for the control plane's web UI to answer.

        A 200 or 403 on /login means the server is up (403 until setup is
        complete).
        """
        for attempt in range(1, max_attempts + 1):
            try:
                response = requests.get(f"{self.base_url}/login", timeout=2)
                if response.status_code in (200, 403):
                    return True
            except requests.exceptions.RequestException:
                pass
            logger.debug(f"Waiting for control plane ({attempt}/{max_attempts})")
            if attempt < max_attempts:
                time.sleep(interval)
        return False

    def initial_admin_password(self) -> str | None:
        """Read the control plane's initial admin password from the container."""
        try:
            result = self._run(
                ["docker", "exec", self.container_name, "cat", INITIAL_PASSWORD_PATH]
            )
        except OSError:
            return None
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def start(self, skip_if_running: bool = True, max_attempts: int = 180) -> ControlPlaneStart:
        """
        Bring the control plane up and wait for it to answer.

        Args:
            skip_if_running: Return immediately if the container is running
            max_attempts: Seconds to wait for the web UI

        Returns:
            ControlPlaneStart describing what happened

        Raises:
            RuntimeError: If Docker is unavailable, docker-compose.yml is
                          missing, compose fails, or the server never answers
        """
        if not self.is_docker_available():
            raise RuntimeError("Docker is not running. Please start Docker and try again.")

        if skip_if_running and self.is_control_plane_running():
            logger.info("Control plane is already running")
            return ControlPlaneStart(started=False, already_running=True, url=self.base_url)

        compose_file = self.compose_dir / COMPOSE_FILE
        if not compose_file.exists():
            raise RuntimeError(f"{COMPOSE_FILE} not found in {self.compose_dir}")

        logger.info("Building and starting control plane container...")
        result = self._run([*self.compose_command, "up", "-d", "--build"], cwd=self.compose_dir)
        if result.returncode != 0:
            raise RuntimeError(f"Failed to start control plane: {result.stderr.strip()}")

        logger.info("Waiting for control plane to start (this may take a few minutes on first run)...")
        if not self.wait_for_login(max_attempts=max_attempts):
            raise RuntimeError("Control plane failed to start within timeout")

        return ControlPlaneStart(
            started=True,
            already_running=False,
            url=self.base_url,
            initial_password=self.initial_admin_password(),
        )

    def stop(self) -> None:
        """
        Stop the control plane.

        Raises:
            RuntimeError: If docker-compose.yml is missing or compose fails
        """
        if not (self.compose_dir / COMPOSE_FILE).exists():
            raise RuntimeError(f"{COMPOSE_FILE} not found in {self.compose_dir}")

        result = self._run([*self.compose_command, "down"], cwd=self.compose_dir)
        if result.returncode != 0:
            raise RuntimeError(f"Failed to stop control plane: {result.stderr.strip()}")
        logger.info("Control plane stopped")
