# /*
# Copyright 2026 The eks-bootstrap Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Configuration classes, workflow options, and config resolution/display."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from eks_bootstrap import console, logger
from eks_bootstrap.constants import (
    DEFAULT_ARGOCD_ADMIN_PASSWORD,
    DEFAULT_ARGOCD_LOCAL_PORT,
    DEFAULT_ARGOCD_MANIFEST_URL,
    DEFAULT_ARGOCD_NAMESPACE,
    DEFAULT_AWS_REGION,
    DEFAULT_CLUSTER_NAME,
    DEFAULT_ECR_REPO_NAME,
    DEFAULT_IMAGE_TAG,
    DEFAULT_NODE_COUNT,
    DEFAULT_NODE_TYPE,
    DEFAULT_SOURCE_DIR,
    DEFAULT_SOURCE_REPO_URL,
    DEFAULT_SSH_KEY_NAME,
    ECR_HOST_TEMPLATE,
    KEY_FILE_SUFFIX,
    STATE_DIR_NAME,
)

_SETTINGS = SettingsConfigDict(extra="ignore")


# ============================================================================
# Configuration classes
# ============================================================================

class AwsConfig(BaseSettings):
    """AWS account and region, auto-loaded from AWS_* env vars.

    Attributes:
        aws_region: Region every AWS and eksctl call targets.
        aws_account_id: 12-digit account id, or None to resolve from STS.
    """

    model_config = _SETTINGS

    aws_region: str = Field(default=DEFAULT_AWS_REGION, pattern=r"^[a-z]{2}(-[a-z]+)+-\d$")
    aws_account_id: str | None = Field(default=None, pattern=r"^\d{12}$")


class RegistryConfig(BaseSettings):
    """ECR repository settings.

    Attributes:
        ecr_repo_name: ECR repository name, also used as the local image name.
        ecr_image_tag: Tag pushed to (and deleted from) the repository.
    """

    model_config = _SETTINGS

    ecr_repo_name: str = Field(
        default=DEFAULT_ECR_REPO_NAME,
        min_length=2,
        max_length=256,
        pattern=r"^(?:[a-z0-9]+(?:[._-][a-z0-9]+)*/)*[a-z0-9]+(?:[._-][a-z0-9]+)*$",
    )
    ecr_image_tag: str = Field(default=DEFAULT_IMAGE_TAG, pattern=r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")


class ClusterConfig(BaseSettings):
    """EKS cluster and SSH key pair settings.

    Attributes:
        eks_cluster_name: Name of the EKS cluster.
        ssh_key_name: EC2 key pair name; the private key lands in ``<name>.pem``.
        eks_node_count: Managed node group size.
        eks_node_type: EC2 instance type for the node group.
        eks_with_oidc: Whether to associate an IAM OIDC provider.
    """

    model_config = _SETTINGS

    eks_cluster_name: str = Field(default=DEFAULT_CLUSTER_NAME, pattern=r"^[a-zA-Z][a-zA-Z0-9-]{0,99}$")
    ssh_key_name: str = Field(default=DEFAULT_SSH_KEY_NAME, min_length=1, max_length=255, pattern=r"^[^/\\]+$")
    eks_node_count: int = Field(default=DEFAULT_NODE_COUNT, ge=1, le=100)
    eks_node_type: str = Field(default=DEFAULT_NODE_TYPE, pattern=r"^[a-z][a-z0-9-]*\.[a-z0-9]+$")
    eks_with_oidc: bool = True


class ArgoCDConfig(BaseSettings):
    """Argo CD install and access settings.

    Attributes:
        argocd_namespace: Namespace Argo CD is installed into.
        argocd_manifest_url: Install manifest applied into the namespace.
        argocd_local_port: Local port the UI tunnel listens on.
        argocd_admin_password: Password written into the initial admin secret.
    """

    model_config = _SETTINGS

    argocd_namespace: str = Field(
        default=DEFAULT_ARGOCD_NAMESPACE, max_length=63, pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"
    )
    argocd_manifest_url: str = Field(default=DEFAULT_ARGOCD_MANIFEST_URL, pattern=r"^https?://\S+$")
    argocd_local_port: int = Field(default=DEFAULT_ARGOCD_LOCAL_PORT, ge=1, le=65535)
    argocd_admin_password: SecretStr = SecretStr(DEFAULT_ARGOCD_ADMIN_PASSWORD)


class WorkspaceConfig(BaseSettings):
    """Local filesystem layout.

    Attributes:
        bootstrap_work_dir: Directory holding the key file, clone, and state.
        source_repo_url: Git repository with the Dockerfile and manifests.
        source_dir: Name of the clone directory under the work dir.
    """

    model_config = _SETTINGS

    bootstrap_work_dir: Path = Field(default_factory=Path.cwd)
    source_repo_url: str = DEFAULT_SOURCE_REPO_URL
    source_dir: str = Field(default=DEFAULT_SOURCE_DIR, pattern=r"^[^/\\]+$")


@dataclass(frozen=True)
class BootstrapSettings:
    """All resolved configuration for one invocation."""

    aws: AwsConfig
    registry: RegistryConfig
    cluster: ClusterConfig
    argocd: ArgoCDConfig
    workspace: WorkspaceConfig


# ============================================================================
# Workflow options
# ============================================================================

@dataclass(frozen=True)
class SetupOptions:
    """Steps to opt out of during setup.

    Attributes:
        skip_registry: Skip ECR repository creation.
        skip_image: Skip clone, build, and push.
        skip_cluster: Skip key pair, cluster creation, and kubeconfig merge.
        skip_argocd: Skip Argo CD install and admin password.
        skip_tunnel: Skip the UI port-forward.
        skip_app: Skip applying the application manifests.
        teardown_after: Run the teardown workflow once setup completes.
    """

    skip_registry: bool = False
    skip_image: bool = False
    skip_cluster: bool = False
    skip_argocd: bool = False
    skip_tunnel: bool = False
    skip_app: bool = False
    teardown_after: bool = False


@dataclass(frozen=True)
class TeardownOptions:
    """Options for the teardown workflow.

    Attributes:
        keep_local: Leave the key file and the cloned source in place.
    """

    keep_local: bool = False


# ============================================================================
# Derived values
# ============================================================================

def registry_host(account_id: str, region: str) -> str:
    """Return the ECR registry host for an account and region."""
    return ECR_HOST_TEMPLATE.format(account=account_id, region=region)


def image_uri(aws: AwsConfig, registry: RegistryConfig) -> str:
    """Return the fully qualified image reference pushed to ECR.

    Raises:
        RuntimeError: If the account id has not been resolved yet.
    """
    if not aws.aws_account_id:
        raise RuntimeError("AWS account id is not resolved; set AWS_ACCOUNT_ID or call resolve_account()")
    host = registry_host(aws.aws_account_id, aws.aws_region)
    return f"{host}/{registry.ecr_repo_name}:{registry.ecr_image_tag}"


def key_file(cluster: ClusterConfig, workspace: WorkspaceConfig) -> Path:
    return workspace.bootstrap_work_dir / f"{cluster.ssh_key_name}{KEY_FILE_SUFFIX}"


def source_path(workspace: WorkspaceConfig) -> Path:
    return workspace.bootstrap_work_dir / workspace.source_dir


def state_dir(workspace: WorkspaceConfig) -> Path:
    return workspace.bootstrap_work_dir / STATE_DIR_NAME


# ============================================================================
# Config resolution
# ============================================================================

_OVERRIDE_TARGETS: dict[str, str] = {
    "region": "aws",
    "account_id": "aws",
    "repo_name": "registry",
    "image_tag": "registry",
    "cluster_name": "cluster",
    "ssh_key_name": "cluster",
    "node_count": "cluster",
    "node_type": "cluster",
    "namespace": "argocd",
    "local_port": "argocd",
    "work_dir": "workspace",
}

_OVERRIDE_FIELDS: dict[str, str] = {
    "region": "aws_region",
    "account_id": "aws_account_id",
    "repo_name": "ecr_repo_name",
    "image_tag": "ecr_image_tag",
    "cluster_name": "eks_cluster_name",
    "ssh_key_name": "ssh_key_name",
    "node_count": "eks_node_count",
    "node_type": "eks_node_type",
    "namespace": "argocd_namespace",
    "local_port": "argocd_local_port",
    "work_dir": "bootstrap_work_dir",
}


def resolve_settings(**overrides: Any) -> BootstrapSettings:
    """Merge CLI overrides, environment variables, and defaults into settings.

    Resolution priority: CLI arguments > environment variables > defaults.
    Overrides whose value is None are ignored, so typer options can be
    passed straight through.

    Args:
        **overrides: CLI option values keyed by option name (``region``,
            ``cluster_name``, ``namespace``, ...).

    Returns:
        Fully validated settings.

    Raises:
        ValueError: If an unknown override name is passed.
        pydantic.ValidationError: If any resolved value fails validation.
    """
    unknown = set(overrides) - set(_OVERRIDE_TARGETS)
    if unknown:
        raise ValueError(f"Unknown config override(s): {', '.join(sorted(unknown))}")

    configs: dict[str, BaseSettings] = {
        "aws": AwsConfig(),
        "registry": RegistryConfig(),
        "cluster": ClusterConfig(),
        "argocd": ArgoCDConfig(),
        "workspace": WorkspaceConfig(),
    }

    updates: dict[str, dict[str, Any]] = {}
    for name, value in overrides.items():
        if value is None:
            continue
        updates.setdefault(_OVERRIDE_TARGETS[name], {})[_OVERRIDE_FIELDS[name]] = value

    for target, update in updates.items():
        # model_copy skips validation, so re-validate through the constructor
        merged = {**configs[target].model_dump(), **update}
        configs[target] = type(configs[target])(**merged)

    settings = BootstrapSettings(**configs)
    if settings.argocd.argocd_admin_password.get_secret_value() == DEFAULT_ARGOCD_ADMIN_PASSWORD:
        logger.warning("Using the built-in Argo CD admin password; set ARGOCD_ADMIN_PASSWORD to override")
    return settings


# ============================================================================
# Display
# ============================================================================

def display_settings(settings: BootstrapSettings) -> None:
    """Print the resolved configuration.

    Args:
        settings: Resolved settings to display. Secrets stay masked.
    """
    aws, registry, cluster = settings.aws, settings.registry, settings.cluster
    argocd, workspace = settings.argocd, settings.workspace

    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print("[yellow]AWS:[/yellow]")
    console.print(f"  region          : {aws.aws_region}")
    console.print(f"  account_id      : {aws.aws_account_id or '(from sts)'}")
    console.print("[yellow]ECR:[/yellow]")
    console.print(f"  repository      : {registry.ecr_repo_name}")
    console.print(f"  tag             : {registry.ecr_image_tag}")
    console.print("[yellow]EKS:[/yellow]")
    console.print(f"  cluster_name    : {cluster.eks_cluster_name}")
    console.print(f"  nodes           : {cluster.eks_node_count} x {cluster.eks_node_type}")
    console.print(f"  ssh_key_name    : {cluster.ssh_key_name}")
    console.print("[yellow]Argo CD:[/yellow]")
    console.print(f"  namespace       : {argocd.argocd_namespace}")
    console.print(f"  local_port      : {argocd.argocd_local_port}")
    console.print(f"  admin_password  : {argocd.argocd_admin_password}")
    console.print("[yellow]Workspace:[/yellow]")
    console.print(f"  work_dir        : {workspace.bootstrap_work_dir}")
    console.print(f"  source          : {workspace.source_repo_url}")
