"""
Data models for control-plane provisioning.

These models represent the domain objects passed between the API client,
the provisioner, the tunnel manager and the orchestrator. None of them is
persisted; each lives for a single orchestration run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class Crumb:
    """
    A session-bound CSRF token issued by the control plane.

    Only valid inside the cookie session that requested it.
    """

    field: str  # Header name, e.g. "Jenkins-Crumb"
    value: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Crumb":
        """Create a crumb from the crumb issuer's JSON response."""
        return cls(field=data["crumbRequestField"], value=data["crumb"])

    def as_header(self) -> dict[str, str]:
        return {self.field: self.value}


@dataclass
class CredentialRecord:
    """
    A username/secret credential stored in the control plane's global domain.

    The id is the natural key: two records with the same id are the same
    credential.
    """

    id: str
    username: str
    secret: str
    description: str = ""


@dataclass
class PipelineJobRecord:
    """
    A pipeline job bound to a source repository.

    The name is the natural key within the job namespace.
    """

    name: str
    repo_url: str  # e.g. "https://github.com/owner/repo" (no .git suffix)
    branch: str = "main"
    script_path: str = "Jenkinsfile"
    webhook_trigger: bool = True

    @property
    def branch_spec(self) -> str:
        return f"*/{self.branch}"


class ResourceKind(str, Enum):
    CREDENTIAL = "credential"
    JOB = "job"


@dataclass
class ResourceSpec:
    """
    Tagged description of a control-plane resource.

    Carries everything needed to check for the resource and to create it.
    """

    kind: ResourceKind
    key: str
    document: str  # XML configuration document
    create_path: str
    exists_path: str


class EnsureOutcome(str, Enum):
    CREATED = "created"
    EXISTS = "exists"
    FAILED = "failed"


@dataclass
class ProvisionResult:
    """Outcome of one ensure operation."""

    kind: ResourceKind
    key: str
    outcome: EnsureOutcome

    @property
    def ok(self) -> bool:
        return self.outcome in (EnsureOutcome.CREATED, EnsureOutcome.EXISTS)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "key": self.key, "outcome": self.outcome.value}


class TunnelState(str, Enum):
    NOT_STARTED = "not-started"
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class TunnelHandle:
    """
    A public tunnel exposing a local port.

    At most one tunnel per local port is meaningful; an existing tunnel is
    reused rather than duplicated.
    """

    public_url: str
    local_port: int
    state: TunnelState = TunnelState.RUNNING


class WebhookStatus(str, Enum):
    CREATED = "created"
    SKIPPED = "skipped"  # Not attempted, manual instructions provided
    FAILED = "failed"  # Attempted and rejected, manual instructions provided


@dataclass
class WebhookRegistration:
    """
    Result of registering a push-notification hook on the hosting platform.

    Registration is not de-duplicated: repeated runs may create several
    hooks for the same repository.
    """

    repo: str  # "owner/name"
    target_url: str | None
    events: list[str] = field(default_factory=lambda: ["push", "pull_request"])
    secret: str | None = None
    status: WebhookStatus = WebhookStatus.SKIPPED
    hook_id: int | None = None
    manual_instructions: str | None = None

    @property
    def created(self) -> bool:
        return self.status == WebhookStatus.CREATED


@dataclass
class ControlPlaneStart:
    """Result of bringing up the control plane's container."""

    started: bool
    already_running: bool
    url: str
    initial_password: str | None = None


@dataclass
class ExposeResult:
    """
    Result of exposing the control plane through a tunnel.

    On failure, reason is one of "not_installed", "auth_required",
    "auth_failed" or "tunnel_failed".
    """

    success: bool
    tunnel: TunnelHandle | None = None
    webhook: WebhookRegistration | None = None
    reason: str | None = None

    @property
    def webhook_url(self) -> str | None:
        if self.tunnel is None:
            return None
        return f"{self.tunnel.public_url.rstrip('/')}/github-webhook/"


@dataclass
class InitReport:
    """Aggregate outcome of a full orchestration run."""

    control_plane: ControlPlaneStart | None = None
    resources: list[ProvisionResult] = field(default_factory=list)
    expose: ExposeResult | None = None

    @property
    def provisioned(self) -> bool:
        return all(result.ok for result in self.resources)
