"""
CI Bootstrap client module.

HTTP clients for the control plane (session-authenticated API client,
readiness poller, resource provisioner) and for the hosting platform
(webhook registrar).
"""

from .client import ControlPlaneClient
from .provisioner import ResourceProvisioner, ensure_resource
from .readiness import wait_until_ready
from .webhook import register_webhook

__all__ = [
    "ControlPlaneClient",
    "ResourceProvisioner",
    "ensure_resource",
    "wait_until_ready",
    "register_webhook",
]
