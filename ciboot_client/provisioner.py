"""
Idempotent provisioning of control-plane resources.

Both resource kinds (stored credentials and pipeline jobs) go through the
same existence-check-then-create operation. Existence is decided by natural
key only: a resource whose stored configuration differs from the requested
one is skipped, never updated.
"""

import logging
from collections.abc import Callable
from urllib.parse import quote

from ciboot_common.models import (
    CredentialRecord,
    EnsureOutcome,
    PipelineJobRecord,
    ProvisionResult,
    ResourceKind,
    ResourceSpec,
)

from .client import ControlPlaneClient
from .documents import credential_document, pipeline_job_document

logger = logging.getLogger(__name__)

CREDENTIAL_STORE = "/credentials/store/system/domain/_"
JOB_EXISTS_MARKER = '"fullName"'


def ensure_resource(
    kind: ResourceKind,
    key: str,
    exists_check: Callable[[], bool],
    create_op: Callable[[], bool],
) -> ProvisionResult:
    """
    Create a resource unless one with the same key already exists.

    Args:
        kind: Resource kind (for reporting)
        key: Natural key of the resource
        exists_check: Returns True if the resource is already present
        create_op: Creates the resource, returning True on success

    Returns:
        ProvisionResult with outcome EXISTS, CREATED or FAILED
    """
    if exists_check():
        logger.info(f"{kind.value.capitalize()} '{key}' already exists, skipping")
        return ProvisionResult(kind, key, EnsureOutcome.EXISTS)

    if create_op():
        logger.info(f"{kind.value.capitalize()} '{key}' created")
        return ProvisionResult(kind, key, EnsureOutcome.CREATED)

    logger.error(f"Failed to create {kind.value} '{key}'")
    return ProvisionResult(kind, key, EnsureOutcome.FAILED)


def credential_spec(record: CredentialRecord) -> ResourceSpec:
    return ResourceSpec(
        kind=ResourceKind.CREDENTIAL,
        key=record.id,
        document=credential_document(record),
        create_path=f"{CREDENTIAL_STORE}/createCredentials",
        exists_path=f"{CREDENTIAL_STORE}/credential/{quote(record.id, safe='')}/api/json",
    )


def job_spec(record: PipelineJobRecord) -> ResourceSpec:
    name = quote(record.name, safe="")
    return ResourceSpec(
        kind=ResourceKind.JOB,
        key=record.name,
        document=pipeline_job_document(record),
        create_path=f"/createItem?name={name}",
        exists_path=f"/job/{name}/api/json",
    )


class ResourceProvisioner:
    """Creates credentials and pipeline jobs on the control plane."""

    def __init__(self, client: ControlPlaneClient):
        self.client = client

    def _create(self, spec: ResourceSpec) -> Callable[[], bool]:
        return lambda: self.client.post(spec.create_path, spec.document)

    def ensure_credential(
        self, credential_id: str, username: str, secret: str, description: str = ""
    ) -> ProvisionResult:
        """
        Ensure a global username/secret credential exists.

        Args:
            credential_id: Natural key of the credential
            username: Stored username
            secret: Stored password or token
            description: Human-readable description

        Returns:
            ProvisionResult; FAILED is logged but never raised
        """
        logger.info(f"Ensuring credential: {credential_id}")
        spec = credential_spec(
            CredentialRecord(credential_id, username, secret, description)
        )

        def exists() -> bool:
            data = self.client.get_json(spec.exists_path)
            return data is not None and data.get("id") == credential_id

        return ensure_resource(spec.kind, spec.key, exists, self._create(spec))

    def ensure_job(
        self,
        name: str,
        repo_url: str,
        branch: str = "main",
        script_path: str = "Jenkinsfile",
        webhook_trigger: bool = True,
    ) -> ProvisionResult:
        """
        Ensure a pipeline job named `name` exists.

        Args:
            name: Job name (natural key)
            repo_url: Repository web URL, without the .git suffix
            branch: Branch to build
            script_path: Path of the pipeline script inside the repository
            webhook_trigger: Build on push notifications

        Returns:
            ProvisionResult; an existing job is reported as EXISTS without
            any POST being issued
        """
        logger.info(f"Ensuring pipeline job: {name}")
        spec = job_spec(
            PipelineJobRecord(name, repo_url, branch, script_path, webhook_trigger)
        )

        def exists() -> bool:
            body = self.client.get(spec.exists_path)
            return body is not None and JOB_EXISTS_MARKER in body

        return ensure_resource(spec.kind, spec.key, exists, self._create(spec))

    def list_jobs(self) -> list[str] | None:
        """
        List top-level job names.

        Returns:
            Job names, or None if the control plane could not be reached
        """
        data = self.client.get_json("/api/json?tree=jobs[name]")
        if data is None:
            return None
        return [job["name"] for job in data.get("jobs", []) if "name" in job]

    def delete_job(self, name: str) -> bool:
        """Delete a job by name."""
        return self.client.post(
            f"/job/{quote(name, safe='')}/doDelete",
            "",
            "application/x-www-form-urlencoded",
        )

    def clear_jobs(self) -> dict[str, bool] | None:
        """
        Delete every top-level job.

        Returns:
            Mapping of job name to deletion success, or None if the job list
            could not be fetched
        """
        names = self.list_jobs()
        if names is None:
            logger.error("Could not connect to control plane to list jobs")
            return None

        results: dict[str, bool] = {}
        for name in names:
            ok = self.delete_job(name)
            if ok:
                logger.info(f"Job '{name}' deleted")
            else:
                logger.error(f"Failed to delete job '{name}'")
            results[name] = ok
        return results
