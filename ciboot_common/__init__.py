"""
CI Bootstrap common module.

This module contains the shared domain models and configuration context
used across the bootstrap components (client, tunnel, controller, CLI).

The common module has no dependencies on other ciboot_* modules, making it
a pure domain layer that can be imported by any component.
"""

from .config import BootstrapContext, ConfigStore, Settings
from .models import (
    CredentialRecord,
    Crumb,
    EnsureOutcome,
    PipelineJobRecord,
    ProvisionResult,
    ResourceKind,
    ResourceSpec,
    TunnelHandle,
    TunnelState,
    WebhookRegistration,
    WebhookStatus,
)

__all__ = [
    "BootstrapContext",
    "ConfigStore",
    "Settings",
    "CredentialRecord",
    "Crumb",
    "EnsureOutcome",
    "PipelineJobRecord",
    "ProvisionResult",
    "ResourceKind",
    "ResourceSpec",
    "TunnelHandle",
    "TunnelState",
    "WebhookRegistration",
    "WebhookStatus",
]
