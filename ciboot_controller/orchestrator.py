"""
Orchestration of a full bootstrap run.

Steps run sequentially on one thread: start the control plane's container,
wait for its API, provision credentials and the pipeline job, then
optionally expose it through a tunnel and register a webhook. Each step is
idempotent and can be invoked on its own.

Components report failure through return values. The orchestrator only
raises (RuntimeError) for unrecoverable preconditions: Docker unavailable,
missing local files, or a control plane that never becomes ready.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from ciboot_client.client import ControlPlaneClient
from ciboot_client.provisioner import ResourceProvisioner
from ciboot_client.readiness import wait_until_ready
from ciboot_client.webhook import register_webhook
from ciboot_common.config import BootstrapContext
from ciboot_common.models import (
    ControlPlaneStart,
    ExposeResult,
    InitReport,
    ProvisionResult,
)
from ciboot_tunnel.manager import TunnelManager
from ciboot_tunnel.process import TunnelProcess, install_command

from .container_runtime import ContainerRuntime

logger = logging.getLogger(__name__)

GITHUB_WEB_URL = "https://github.com"
DOCKER_HUB_CREDENTIAL_ID = "docker-hub-credentials"


def split_repo(repo: str) -> tuple[str, str]:
    """
    Split "owner/name" into its parts.

    Raises:
        ValueError: If repo is not of the form "owner/name"
    """
    owner, sep, name = repo.strip().partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ValueError(f"Repository must be of the form owner/name: {repo!r}")
    return owner, name


@dataclass
class InitOptions:
    """Inputs for a full bootstrap run."""

    repo: str  # "owner/name" of an existing repository
    job_name: str | None = None  # Defaults to the repository name
    branch: str = "main"
    script_path: str = "Jenkinsfile"
    docker_hub_username: str | None = None
    docker_hub_password: str | None = None
    tunnel: bool = False
    webhook_secret: str | None = None
    skip_start: bool = False


class Orchestrator:
    """Composes the container runtime, API client, provisioner and tunnel."""

    def __init__(
        self,
        context: BootstrapContext,
        client: ControlPlaneClient | None = None,
        runtime: ContainerRuntime | None = None,
        tunnel: TunnelManager | None = None,
        prompt_token: Callable[[], str] | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            context: Settings and config store loaded at process start
            client: Control plane client (built from settings if omitted)
            runtime: Container runtime (built from settings if omitted)
            tunnel: Tunnel manager (built from settings if omitted)
            prompt_token: Interactive collaborator for the tunnel auth token
        """
        self.context = context
        settings = context.settings

        self.client = client or ControlPlaneClient(
            settings.jenkins_url, settings.jenkins_user, settings.jenkins_password
        )
        self.provisioner = ResourceProvisioner(self.client)
        self.runtime = runtime or ContainerRuntime(
            compose_dir=settings.compose_dir,
            container_name=settings.container_name,
            base_url=settings.jenkins_url,
        )
        self.tunnel = tunnel or TunnelManager(
            context.store,
            process=TunnelProcess(settings.ngrok_path),
            status_url=settings.tunnel_api_url,
            prompt_token=prompt_token,
        )

    def start_control_plane(self, skip_if_running: bool = True) -> ControlPlaneStart:
        """Start the control plane's container (fatal errors raise RuntimeError)."""
        return self.runtime.start(skip_if_running=skip_if_running)

    def stop_control_plane(self) -> None:
        self.runtime.stop()

    def wait_until_ready(self) -> bool:
        settings = self.context.settings
        return wait_until_ready(
            self.client,
            max_attempts=settings.ready_attempts,
            interval=settings.ready_interval,
        )

    def provision(
        self,
        repo: str,
        job_name: str | None = None,
        branch: str = "main",
        script_path: str = "Jenkinsfile",
        docker_hub_username: str | None = None,
        docker_hub_password: str | None = None,
    ) -> list[ProvisionResult]:
        """
        Wait for the control plane, then ensure credentials and the job.

        Docker Hub credentials fall back to the saved configuration.

        Returns:
            One ProvisionResult per resource

        Raises:
            ValueError: If repo is not "owner/name"
            RuntimeError: If the control plane API never becomes ready
        """
        _, repo_name = split_repo(repo)

        if not self.wait_until_ready():
            raise RuntimeError("Control plane API not ready, cannot configure it")

        if not (docker_hub_username and docker_hub_password):
            docker_hub_username, docker_hub_password = (
                self.context.store.docker_hub_credentials()
            )

        results = []
        if docker_hub_username and docker_hub_password:
            results.append(
                self.provisioner.ensure_credential(
                    DOCKER_HUB_CREDENTIAL_ID,
                    docker_hub_username,
                    docker_hub_password,
                    "Docker Hub credentials for pushing images",
                )
            )

        results.append(
            self.provisioner.ensure_job(
                job_name or repo_name,
                f"{GITHUB_WEB_URL}/{repo}",
                branch=branch,
                script_path=script_path,
            )
        )
        return results

    def expose(
        self, repo: str | None = None, port: int | None = None, secret: str | None = None
    ) -> ExposeResult:
        """
        Expose the control plane through a tunnel and register a webhook.

        Args:
            repo: Repository to register the webhook on ("owner/name"), or
                  None to only start the tunnel
            port: Local port to expose (defaults to the configured port)
            secret: Optional webhook secret

        Returns:
            ExposeResult; failures carry a reason instead of raising

        Raises:
            ValueError: If repo is given and is not "owner/name". Checked
                        before the tunnel is touched.
        """
        if repo:
            split_repo(repo)
        port = port or self.context.settings.jenkins_port

        if self.tunnel.process.find_executable() is None:
            logger.error(
                f"Tunnel provider '{self.tunnel.process.executable}' not found. "
                f"Install it with `{install_command()}` or from https://ngrok.com/download"
            )
            return ExposeResult(success=False, reason="not_installed")

        if not self.tunnel.ensure_authenticated():
            reason = "auth_required" if self.tunnel.prompt_token is None else "auth_failed"
            return ExposeResult(success=False, reason=reason)

        handle = self.tunnel.ensure_tunnel(port)
        if handle is None:
            return ExposeResult(success=False, reason="tunnel_failed")

        webhook = None
        if repo:
            webhook = register_webhook(
                repo,
                handle.public_url,
                self.context.github_token(),
                secret=secret,
                api_url=self.context.settings.github_api_url,
            )
        return ExposeResult(success=True, tunnel=handle, webhook=webhook)

    def clear_jobs(self) -> dict[str, bool] | None:
        return self.provisioner.clear_jobs()

    def run_init(self, options: InitOptions) -> InitReport:
        """
        Run every step in order.

        Resources created before a failing step are left in place.
        """
        split_repo(options.repo)
        report = InitReport()

        if not options.skip_start:
            report.control_plane = self.start_control_plane()

        report.resources = self.provision(
            options.repo,
            job_name=options.job_name,
            branch=options.branch,
            script_path=options.script_path,
            docker_hub_username=options.docker_hub_username,
            docker_hub_password=options.docker_hub_password,
        )

        if options.tunnel:
            report.expose = self.expose(options.repo, secret=options.webhook_secret)

        return report
