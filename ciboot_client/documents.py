"""
XML configuration documents accepted by the control plane.

Documents are built with ElementTree so that user-supplied values (names,
URLs, secrets) are escaped rather than spliced into markup.
"""

import xml.etree.ElementTree as ET

from ciboot_common.models import CredentialRecord, PipelineJobRecord

CREDENTIAL_CLASS = "com.cloudbees.plugins.credentials.impl.UsernamePasswordCredentialsImpl"
XML_DECLARATION = "<?xml version='1.1' encoding='UTF-8'?>\n"


def _sub(parent: ET.Element, tag: str, text: str | None = None, **attrib: str) -> ET.Element:
    element = ET.SubElement(parent, tag, attrib)
    if text is not None:
        element.text = text
    return element


def _render(root: ET.Element) -> str:
    ET.indent(root)
    return ET.tostring(root, encoding="unicode")


def credential_document(record: CredentialRecord) -> str:
    """Render a global username/password credential."""
    root = ET.Element(CREDENTIAL_CLASS)
    _sub(root, "scope", "GLOBAL")
    _sub(root, "id", record.id)
    _sub(root, "description", record.description)
    _sub(root, "username", record.username)
    _sub(root, "password", record.secret)
    return _render(root)


def pipeline_job_document(record: PipelineJobRecord) -> str:
    """
    Render a pipeline job whose script is read from the repository.

    The job checks out record.repo_url on the record's branch spec, runs the
    script at record.script_path and, when webhook_trigger is set, builds on
    push notifications from the hosting platform.
    """
    repo_url = record.repo_url.rstrip("/")

    root = ET.Element("flow-definition", plugin="workflow-job")
    _sub(root, "description", f"Pipeline for {record.name}")
    _sub(root, "keepDependencies", "false")

    properties = _sub(root, "properties")
    project = _sub(
        properties,
        "com.coravy.hudson.plugins.github.GithubProjectProperty",
        plugin="github",
    )
    _sub(project, "projectUrl", f"{repo_url}/")
    _sub(project, "displayName", "")

    definition = _sub(
        root,
        "definition",
        **{
            "class": "org.jenkinsci.plugins.workflow.cps.CpsScmFlowDefinition",
            "plugin": "workflow-cps",
        },
    )
    scm = _sub(definition, "scm", **{"class": "hudson.plugins.git.GitSCM", "plugin": "git"})
    _sub(scm, "configVersion", "2")
    remotes = _sub(scm, "userRemoteConfigs")
    remote = _sub(remotes, "hudson.plugins.git.UserRemoteConfig")
    _sub(remote, "url", f"{repo_url}.git")
    branches = _sub(scm, "branches")
    branch = _sub(branches, "hudson.plugins.git.BranchSpec")
    _sub(branch, "name", record.branch_spec)
    _sub(scm, "doGenerateSubmoduleConfigurations", "false")
    _sub(scm, "submoduleCfg", **{"class": "empty-list"})
    _sub(scm, "extensions")
    _sub(definition, "scriptPath", record.script_path)
    _sub(definition, "lightweight", "true")

    triggers = _sub(root, "triggers")
    if record.webhook_trigger:
        trigger = _sub(triggers, "com.cloudbees.jenkins.GitHubPushTrigger", plugin="github")
        _sub(trigger, "spec", "")

    _sub(root, "disabled", "false")
    return XML_DECLARATION + _render(root)
