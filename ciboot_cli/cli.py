"""
CLI for bootstrapping a CI control plane.

Each capability can be invoked on its own: the full run (init), control
plane provisioning, tunnel management, job cleanup and saved configuration.
"""

import json
import logging
import sys

import click

from ciboot_common.config import BootstrapContext
from ciboot_common.models import WebhookStatus
from ciboot_controller.orchestrator import InitOptions, Orchestrator
from ciboot_tunnel.manager import TOKEN_DASHBOARD_URL
from ciboot_tunnel.process import install_command

logger = logging.getLogger(__name__)

EXPOSE_FAILURES = {
    "not_installed": "Tunnel provider is not installed (https://ngrok.com/download)",
    "auth_required": "Tunnel provider is not authenticated",
    "auth_failed": "Tunnel provider authentication failed",
    "tunnel_failed": "Tunnel did not start",
}


def prompt_tunnel_token() -> str:
    """Ask the user for the tunnel provider's auth token."""
    click.echo("\nThe tunnel provider requires authentication.")
    click.echo(f"Get your auth token at: {TOKEN_DASHBOARD_URL}")
    return click.prompt("Auth token", hide_input=True, default="", show_default=False)


def get_orchestrator(context: BootstrapContext, interactive: bool = True) -> Orchestrator:
    """Build the orchestrator for this process."""
    return Orchestrator(context, prompt_token=prompt_tunnel_token if interactive else None)


def fail(message: str, code: int = 1) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)


def interrupted() -> None:
    click.echo("\n\nCancelled by user.", err=True)
    sys.exit(130)  # Standard exit code for SIGINT


def echo_resources(results) -> None:
    for result in results:
        mark = "✓" if result.ok else "✗"
        click.echo(f"  {mark} {result.kind.value} '{result.key}': {result.outcome.value}")


def echo_expose(result) -> None:
    if not result.success:
        click.echo(f"  ✗ {EXPOSE_FAILURES.get(result.reason, result.reason)}")
        if result.reason == "not_installed":
            click.echo(f"    Install it with: {install_command()}")
        return

    click.echo(f"  ✓ Public URL:  {result.tunnel.public_url}")
    click.echo(f"    Webhook URL: {result.webhook_url}")
    webhook = result.webhook
    if webhook is None:
        return
    if webhook.status == WebhookStatus.CREATED:
        click.echo("  ✓ Webhook created")
    else:
        click.echo(f"  ⚠️  Webhook {webhook.status.value}")
        click.echo(webhook.manual_instructions)


@click.group()
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Logging level (default: INFO)",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str):
    """CI Bootstrap - Start, expose and provision a CI control plane."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.obj = BootstrapContext.load()


# ============================================================================
# Full run and provisioning
# ============================================================================


def job_options(func):
    func = click.option("--script-path", default="Jenkinsfile", show_default=True,
                        help="Pipeline script path inside the repository")(func)
    func = click.option("--branch", default="main", show_default=True,
                        help="Branch the job builds")(func)
    func = click.option("--job-name", help="Job name (default: repository name)")(func)
    func = click.option("--repo", required=True, help="Existing repository (owner/name)")(func)
    return func


def docker_hub_options(func):
    func = click.option("--save-docker-hub", is_flag=True,
                        help="Save the Docker Hub credentials for future runs")(func)
    func = click.option("--docker-hub-password", help="Docker Hub password or token")(func)
    func = click.option("--docker-hub-user", help="Docker Hub username")(func)
    return func


def write_config(context: BootstrapContext, update, *args) -> None:
    try:
        update(*args)
    except OSError as e:
        fail(f"Could not write configuration {context.store.path}: {e}")


def resolve_docker_hub(context: BootstrapContext, user, password, save) -> tuple:
    if user and not password:
        password = click.prompt("Docker Hub password", hide_input=True)
    if save and user and password:
        write_config(context, context.store.save_docker_hub_credentials, user, password)
        click.echo("✓ Docker Hub credentials saved")
    return user, password


@cli.command("init")
@job_options
@docker_hub_options
@click.option("--tunnel/--no-tunnel", default=False, help="Expose the control plane and register a webhook")
@click.option("--webhook-secret", help="Shared secret for webhook payloads")
@click.option("--skip-start", is_flag=True, help="Assume the control plane is already running")
@click.pass_obj
def init(context: BootstrapContext, repo, job_name, branch, script_path,
         docker_hub_user, docker_hub_password, save_docker_hub,
         tunnel, webhook_secret, skip_start):
    """Start, provision and (optionally) expose the control plane."""
    docker_hub_user, docker_hub_password = resolve_docker_hub(
        context, docker_hub_user, docker_hub_password, save_docker_hub
    )
    options = InitOptions(
        repo=repo,
        job_name=job_name,
        branch=branch,
        script_path=script_path,
        docker_hub_username=docker_hub_user,
        docker_hub_password=docker_hub_password,
        tunnel=tunnel,
        webhook_secret=webhook_secret,
        skip_start=skip_start,
    )

    try:
        report = get_orchestrator(context).run_init(options)
    except (RuntimeError, ValueError) as e:
        fail(str(e))
    except KeyboardInterrupt:
        interrupted()

    click.echo("\nSetup complete:")
    if report.control_plane is not None:
        state = "started" if report.control_plane.started else "already running"
        click.echo(f"  ✓ Control plane {state}: {report.control_plane.url}")
        if report.control_plane.initial_password:
            click.echo(f"    Initial admin password: {report.control_plane.initial_password}")
    echo_resources(report.resources)
    if report.expose is not None:
        echo_expose(report.expose)

    sys.exit(0 if report.provisioned else 1)


@cli.command("provision")
@job_options
@docker_hub_options
@click.pass_obj
def provision(context: BootstrapContext, repo, job_name, branch, script_path,
              docker_hub_user, docker_hub_password, save_docker_hub):
    """Provision credentials and the pipeline job on a running control plane."""
    docker_hub_user, docker_hub_password = resolve_docker_hub(
        context, docker_hub_user, docker_hub_password, save_docker_hub
    )
    try:
        results = get_orchestrator(context).provision(
            repo,
            job_name=job_name,
            branch=branch,
            script_path=script_path,
            docker_hub_username=docker_hub_user,
            docker_hub_password=docker_hub_password,
        )
    except (RuntimeError, ValueError) as e:
        fail(str(e))
    except KeyboardInterrupt:
        interrupted()

    echo_resources(results)
    sys.exit(0 if all(r.ok for r in results) else 1)


@cli.command("clear-jobs")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def clear_jobs(context: BootstrapContext, yes: bool):
    """Delete ALL jobs from the control plane."""
    if not yes:
        click.confirm("Delete every job on the control plane?", abort=True)

    results = get_orchestrator(context, interactive=False).clear_jobs()
    if results is None:
        fail("Could not connect to the control plane")

    if not results:
        click.echo("No jobs found to delete.")
        sys.exit(0)

    for name, ok in results.items():
        click.echo(f"  {'✓' if ok else '✗'} {name}")
    sys.exit(0 if all(results.values()) else 1)


# ============================================================================
# Control plane container
# ============================================================================


@cli.group("control-plane")
def control_plane():
    """Start or stop the control plane's container."""
    pass


@control_plane.command("start")
@click.pass_obj
def control_plane_start(context: BootstrapContext):
    """Start the control plane (no-op if it is running)."""
    try:
        result = get_orchestrator(context, interactive=False).start_control_plane()
    except RuntimeError as e:
        fail(str(e))
    except KeyboardInterrupt:
        interrupted()

    click.echo(f"✓ Control plane URL: {result.url}")
    if result.initial_password:
        click.echo(f"  Initial admin password: {result.initial_password}")


@control_plane.command("stop")
@click.pass_obj
def control_plane_stop(context: BootstrapContext):
    """Stop the control plane."""
    try:
        get_orchestrator(context, interactive=False).stop_control_plane()
    except RuntimeError as e:
        fail(str(e))
    click.echo("✓ Control plane stopped")


# ============================================================================
# Tunnel
# ============================================================================


@cli.group()
def tunnel():
    """Manage the public tunnel in front of the control plane."""
    pass


@tunnel.command("start")
@click.option("--port", type=int, help="Local port to expose (default: CIBOOT_JENKINS_PORT or 8080)")
@click.option("--repo", help="Register a webhook on this repository (owner/name)")
@click.option("--webhook-secret", help="Shared secret for webhook payloads")
@click.pass_obj
def tunnel_start(context: BootstrapContext, port, repo, webhook_secret):
    """Start (or reuse) the tunnel and optionally register a webhook."""
    try:
        result = get_orchestrator(context).expose(repo, port=port, secret=webhook_secret)
    except ValueError as e:
        fail(str(e))
    except KeyboardInterrupt:
        interrupted()

    echo_expose(result)
    sys.exit(0 if result.success else 1)


@tunnel.command("url")
@click.pass_obj
def tunnel_url(context: BootstrapContext):
    """Print the current public URL."""
    url = get_orchestrator(context, interactive=False).tunnel.get_public_url()
    if url is None:
        fail("No tunnel is running")
    click.echo(url)


@tunnel.command("stop")
@click.pass_obj
def tunnel_stop(context: BootstrapContext):
    """Stop the tunnel provider."""
    get_orchestrator(context, interactive=False).tunnel.stop_tunnel()
    click.echo("✓ Tunnel stopped")


# ============================================================================
# Saved configuration
# ============================================================================


@cli.group()
def config():
    """Show or clear saved configuration."""
    pass


@config.command("show")
@click.option("--reveal", is_flag=True, help="Show secrets in clear text")
@click.pass_obj
def config_show(context: BootstrapContext, reveal: bool):
    """Show saved configuration."""
    click.echo(f"Configuration ({context.store.path}):")
    click.echo(json.dumps(context.store.as_dict(reveal=reveal), indent=2))


@config.command("clear")
@click.pass_obj
def config_clear(context: BootstrapContext):
    """Clear all saved configuration."""
    write_config(context, context.store.clear)
    click.echo("✓ Configuration cleared")


@config.command("clear-docker")
@click.pass_obj
def config_clear_docker(context: BootstrapContext):
    """Clear saved Docker Hub credentials."""
    write_config(context, context.store.clear_docker_hub_credentials)
    click.echo("✓ Docker Hub credentials cleared")


@config.command("clear-github")
@click.pass_obj
def config_clear_github(context: BootstrapContext):
    """Clear saved GitHub credentials."""
    write_config(context, context.store.clear_github_credentials)
    click.echo("✓ GitHub credentials cleared")


@config.command("set-github")
@click.option("--username", required=True, help="GitHub username")
@click.option("--token", prompt=True, hide_input=True, help="GitHub token with admin:repo_hook scope")
@click.pass_obj
def config_set_github(context: BootstrapContext, username: str, token: str):
    """Save GitHub credentials used for webhook registration."""
    write_config(context, context.store.save_github_credentials, username, token)
    click.echo("✓ GitHub credentials saved")


if __name__ == "__main__":
    cli()
