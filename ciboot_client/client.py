"""
Session-authenticated client for the control plane's administrative API.

Every mutating request is a two-step transaction on one cookie session:
fetch a fresh crumb, then POST with it. The server rejects crumbs presented
outside the session that issued them, so crumbs are never cached.
"""

import json
import logging

import requests

from ciboot_common.models import Crumb

logger = logging.getLogger(__name__)

CRUMB_PATH = "/crumbIssuer/api/json"


class ControlPlaneClient:
    """
    HTTP client for the control plane using Basic authentication.

    Calls never raise on connectivity or HTTP errors; failures are reported
    as None (reads) or False (writes).
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        username: str = "admin",
        password: str = "admin",
        timeout: float = 10,
    ):
        """
        Initialize the client.

        Args:
            base_url: Control plane base URL (trailing slash ignored)
            username: Admin username for Basic auth
            password: Admin password or API token for Basic auth
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.auth = (username, password)
        self.timeout = timeout

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def get(self, path: str) -> str | None:
        """
        Issue an authenticated GET.

        Args:
            path: Path relative to the base URL, starting with "/"

        Returns:
            Response body on a 2xx response, None on any failure
        """
        try:
            response = requests.get(self.url(path), auth=self.auth, timeout=self.timeout)
            response.raise_for_status()
            return response.text
        except requests.exceptions.RequestException as e:
            logger.debug(f"GET {path} failed: {e}")
            return None

    def get_json(self, path: str) -> dict | None:
        """GET a path and decode the body as a JSON object."""
        body = self.get(path)
        if body is None:
            return None
        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            logger.debug(f"GET {path} returned a non-JSON body")
            return None
        return data if isinstance(data, dict) else None

    def fetch_crumb(self, session: requests.Session) -> Crumb | None:
        """
        Request a crumb on the given session.

        The session keeps the cookie the crumb is bound to, so the caller
        must send its POST through the same session.
        """
        try:
            response = session.get(self.url(CRUMB_PATH), timeout=self.timeout)
            response.raise_for_status()
            return Crumb.from_dict(response.json())
        except (requests.exceptions.RequestException, ValueError, KeyError) as e:
            logger.debug(f"Could not fetch crumb: {e}")
            return None

    def post(
        self, path: str, body: str = "", content_type: str = "application/xml"
    ) -> bool:
        """
        Issue an authenticated, crumb-protected POST.

        Args:
            path: Path relative to the base URL (may include a query string)
            body: Request body
            content_type: Value of the Content-Type header

        Returns:
            True on a 2xx response, False if the crumb could not be obtained
            or the request failed
        """
        with requests.Session() as session:
            session.auth = self.auth

            crumb = self.fetch_crumb(session)
            if crumb is None:
                logger.warning("Could not get crumb token from control plane")
                return False

            headers = {"Content-Type": content_type, **crumb.as_header()}
            try:
                response = session.post(
                    self.url(path),
                    data=body.encode("utf-8"),
                    headers=headers,
                    timeout=self.timeout,
                )
                response.raise_for_status()
                return True
            except requests.exceptions.RequestException as e:
                logger.debug(f"POST {path} failed: {e}")
                return False
