"""
Push-notification webhook registration on the hosting platform.

Registration is best-effort: a single creation call with no existence
check and no retry. When it cannot be done, the result carries manual
instructions instead of an error.
"""

import logging

import requests

from ciboot_common.models import WebhookRegistration, WebhookStatus

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/github-webhook/"
DEFAULT_EVENTS = ["push", "pull_request"]


def webhook_url(target_base_url: str) -> str:
    """Derive the control plane's callback URL from its public base URL."""
    return f"{target_base_url.rstrip('/')}{CALLBACK_PATH}"


def manual_instructions(repo: str, url: str | None) -> str:
    lines = [
        f"Create the webhook manually for {repo}:",
        "  Settings -> Webhooks -> Add webhook",
    ]
    if url:
        lines.append(f"  Payload URL: {url}")
    lines.append("  Content type: application/json")
    return "\n".join(lines)


def build_hook_payload(url: str, secret: str | None = None) -> dict:
    config = {"url": url, "content_type": "json", "insecure_ssl": "0"}
    if secret:
        config["secret"] = secret
    return {"name": "web", "active": True, "events": list(DEFAULT_EVENTS), "config": config}


def register_webhook(
    repo: str,
    target_base_url: str | None,
    token: str | None,
    secret: str | None = None,
    api_url: str = "https://api.github.com",
    timeout: float = 10,
) -> WebhookRegistration:
    """
    Register a webhook on `repo` pointing at the control plane.

    Args:
        repo: Repository full name ("owner/name")
        target_base_url: Public base URL of the control plane
        token: Hosting platform API token
        secret: Optional shared secret for payload signatures
        api_url: Hosting platform API base URL
        timeout: Request timeout in seconds

    Returns:
        WebhookRegistration tagged CREATED, SKIPPED (nothing attempted) or
        FAILED (attempted and rejected). Non-created results carry manual
        instructions.
    """
    if not target_base_url:
        logger.warning("No public URL provided, skipping webhook setup")
        return WebhookRegistration(
            repo=repo,
            target_url=None,
            secret=secret,
            status=WebhookStatus.SKIPPED,
            manual_instructions=manual_instructions(repo, None),
        )

    url = webhook_url(target_base_url)

    if not token:
        logger.warning("No hosting platform token available, skipping webhook setup")
        return WebhookRegistration(
            repo=repo,
            target_url=url,
            secret=secret,
            status=WebhookStatus.SKIPPED,
            manual_instructions=manual_instructions(repo, url),
        )

    try:
        response = requests.post(
            f"{api_url.rstrip('/')}/repos/{repo}/hooks",
            json=build_hook_payload(url, secret),
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
            },
            timeout=timeout,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.warning(f"Could not create webhook automatically: {e}")
        return WebhookRegistration(
            repo=repo,
            target_url=url,
            secret=secret,
            status=WebhookStatus.FAILED,
            manual_instructions=manual_instructions(repo, url),
        )

    hook_id = data.get("id") if isinstance(data, dict) else None
    logger.info(f"Webhook created: {url}")
    return WebhookRegistration(
        repo=repo,
        target_url=url,
        secret=secret,
        status=WebhookStatus.CREATED,
        hook_id=hook_id,
    )
