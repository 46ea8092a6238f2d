"""
Tunnel lifecycle and discovery.

The manager reuses a running tunnel when the provider's local status API
lists one, and otherwise launches the provider and polls the status API
until a tunnel appears.

State machine: not-started -> starting -> running; stopped is reachable
from any state.
"""

import logging
import time
from collections.abc import Callable

import requests

from ciboot_common.config import ConfigStore
from ciboot_common.models import TunnelHandle, TunnelState

from .process import TunnelProcess

logger = logging.getLogger(__name__)

DEFAULT_STATUS_URL = "http://127.0.0.1:4040/api/tunnels"
TOKEN_DASHBOARD_URL = "https://dashboard.ngrok.com/get-started/your-authtoken"


def select_public_url(tunnels: list[dict]) -> str | None:
    """
    Pick the tunnel URL to use.

    Returns the first HTTPS entry if any, else the first entry of any
    scheme, else None.
    """
    for tunnel in tunnels:
        url = tunnel.get("public_url") or ""
        if tunnel.get("proto") == "https" or url.startswith("https://"):
            return url
    if tunnels:
        return tunnels[0].get("public_url") or None
    return None


class TunnelManager:
    """
    Discovers, starts and stops the public tunnel in front of the control plane.

    The provider's auth token is read from, and saved to, the config store
    passed in; it is never looked up elsewhere mid-run.
    """

    def __init__(
        self,
        store: ConfigStore,
        process: TunnelProcess | None = None,
        status_url: str = DEFAULT_STATUS_URL,
        prompt_token: Callable[[], str] | None = None,
        poll_attempts: int = 30,
        poll_interval: float = 1.0,
        timeout: float = 2,
    ):
        """
        Initialize the tunnel manager.

        Args:
            store: Persisted configuration holding the saved auth token
            process: Handle for the provider's agent process
            status_url: Provider's local status endpoint
            prompt_token: Interactive collaborator asked for a token when
                          none is saved; None disables prompting
            poll_attempts: Status polls after a launch
            poll_interval: Seconds between status polls
            timeout: Status request timeout in seconds
        """
        self.store = store
        self.process = process or TunnelProcess()
        self.status_url = status_url
        self.prompt_token = prompt_token
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval
        self.timeout = timeout

        self.state = TunnelState.NOT_STARTED
        self.handle: TunnelHandle | None = None

    def list_tunnels(self) -> list[dict]:
        """Query the status endpoint. An unreachable provider lists nothing."""
        try:
            response = requests.get(self.status_url, timeout=self.timeout)
            response.raise_for_status()
            tunnels = response.json().get("tunnels") or []
        except (requests.exceptions.RequestException, ValueError, AttributeError):
            return []
        return [t for t in tunnels if isinstance(t, dict)]

    def get_public_url(self) -> str | None:
        return select_public_url(self.list_tunnels())

    def _running(self, url: str, port: int) -> TunnelHandle:
        self.state = TunnelState.RUNNING
        self.handle = TunnelHandle(public_url=url, local_port=port)
        return self.handle

    def ensure_tunnel(self, port: int = 8080) -> TunnelHandle | None:
        """
        Return a running tunnel for `port`, starting one if needed.

        Args:
            port: Local port to expose

        Returns:
            TunnelHandle, or None if the provider could not be launched or no
            tunnel appeared within the polling budget
        """
        existing = self.get_public_url()
        if existing:
            logger.info(f"Tunnel already running: {existing}")
            return self._running(existing, port)

        logger.info(f"Starting tunnel to port {port}...")
        self.state = TunnelState.STARTING
        try:
            self.process.launch(port)
        except OSError as e:
            logger.error(f"Could not launch tunnel provider: {e}")
            self.state = TunnelState.STOPPED
            return None

        for attempt in range(1, self.poll_attempts + 1):
            time.sleep(self.poll_interval)
            url = self.get_public_url()
            if url:
                logger.info(f"Tunnel started: {url}")
                return self._running(url, port)
            logger.debug(f"Waiting for tunnel ({attempt}/{self.poll_attempts})")

        logger.error(f"No tunnel appeared after {self.poll_attempts} attempts")
        self.state = TunnelState.STOPPED
        return None

    def ensure_authenticated(self) -> bool:
        """
        Make sure the provider holds an auth token.

        Installs the saved token if there is one; otherwise (or if the saved
        token is rejected) asks the prompt collaborator and saves the new
        token for future runs.

        Returns:
            True if the provider is authenticated
        """
        if self.process.is_authenticated():
            return True

        saved = self.store.tunnel_auth_token
        if saved:
            logger.info("Using saved tunnel auth token")
            if self.process.add_authtoken(saved):
                return True
            logger.warning("Saved tunnel auth token is invalid, need new token")

        if self.prompt_token is None:
            logger.error("Tunnel provider is not authenticated and prompting is disabled")
            return False

        token = (self.prompt_token() or "").strip()
        if not token:
            logger.error("No tunnel auth token provided")
            return False

        if not self.process.add_authtoken(token):
            return False

        try:
            self.store.save_tunnel_auth_token(token)
        except OSError as e:
            # The provider already holds the token; only persistence failed
            logger.warning(f"Tunnel provider authenticated but token not saved: {e}")
            return True
        logger.info("Tunnel provider authenticated and token saved")
        return True

    def is_running(self) -> bool:
        return self.process.is_running()

    def stop_tunnel(self) -> None:
        """Stop the provider. Best effort; nothing running is fine."""
        if self.process.stop():
            logger.info("Tunnel provider stopped")
        else:
            logger.info("No tunnel provider process was running")
        self.state = TunnelState.STOPPED
        if self.handle is not None:
            self.handle.state = TunnelState.STOPPED
