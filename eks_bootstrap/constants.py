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

"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

PACKAGE_DIR = Path(__file__).resolve().parent


def load_dependencies() -> dict:
    """Load pinned external artifacts from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = PACKAGE_DIR / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- AWS defaults --
DEFAULT_AWS_REGION = "us-east-1"
DEFAULT_ECR_REPO_NAME = "beginner2master-app"
DEFAULT_IMAGE_TAG = "latest"
ECR_LOGIN_USERNAME = "AWS"
ECR_HOST_TEMPLATE = "{account}.dkr.ecr.{region}.amazonaws.com"

# -- EKS defaults --
DEFAULT_CLUSTER_NAME = "demo-cluster"
DEFAULT_SSH_KEY_NAME = "t2s-ssh-key"
DEFAULT_NODE_COUNT = dep_value("eks", "node_count", default=2)
DEFAULT_NODE_TYPE = dep_value("eks", "node_type", default="t3.medium")
KEY_FILE_SUFFIX = ".pem"
KEY_FILE_MODE = 0o400
NODES_READY_TIMEOUT = "5m"

# -- Argo CD defaults --
DEFAULT_ARGOCD_NAMESPACE = "argocd"
DEFAULT_ARGOCD_MANIFEST_URL = dep_value(
    "argocd", "manifest_url",
    default="https://raw.githubusercontent.com/argoproj/argo-cd/stable/manifests/install.yaml",
)
DEFAULT_ARGOCD_LOCAL_PORT = 8080
DEFAULT_ARGOCD_ADMIN_PASSWORD = "admin-t2s"
ARGOCD_SERVER_SERVICE = dep_value("argocd", "server_service", default="argocd-server")
ARGOCD_SERVER_PORT = 443
ARGOCD_INITIAL_ADMIN_SECRET = dep_value(
    "argocd", "initial_admin_secret", default="argocd-initial-admin-secret"
)
ARGOCD_ROLLOUT_TIMEOUT = "5m"

ADMIN_SECRET_PATCH_MAX_RETRIES = 30
ADMIN_SECRET_PATCH_POLL_INTERVAL_SECONDS = 5

# -- Sample application --
DEFAULT_SOURCE_REPO_URL = dep_value(
    "sample_app", "repo_url", default="https://github.com/Here2ServeU/argocd-kubernetes-aws.git"
)
DEFAULT_SOURCE_DIR = dep_value("sample_app", "directory", default="argocd-kubernetes-aws")
APP_MANIFESTS: tuple[str, ...] = tuple(
    dep_value("sample_app", "manifests", default=["deployment.yaml", "service.yaml"])
)
WORKLOAD_KINDS = frozenset({"Deployment", "StatefulSet", "DaemonSet", "ReplicaSet", "Job", "Pod"})

# -- Local state --
STATE_DIR_NAME = ".eks-bootstrap"
TUNNEL_STATE_FILE = "port-forward.json"
TUNNEL_LOG_FILE = "port-forward.log"
TUNNEL_STARTUP_GRACE_SECONDS = 2.0
TUNNEL_LOG_TAIL_CHARS = 500
TUNNEL_STOP_TIMEOUT_SECONDS = 5.0
# create_time is reported with platform-dependent rounding
TUNNEL_CREATE_TIME_TOLERANCE_SECONDS = 0.05

# -- Required CLI tools --
REQUIRED_COMMANDS = ("aws", "eksctl", "kubectl", "git")

# -- Fault markers in CLI stderr --
ALREADY_EXISTS_MARKERS = (
    "RepositoryAlreadyExistsException",
    "InvalidKeyPair.Duplicate",
    "AlreadyExists",
    "already exists",
)
NOT_FOUND_MARKERS = (
    "RepositoryNotFoundException",
    "ImageNotFoundException",
    "InvalidKeyPair.NotFound",
    "ResourceNotFoundException",
    "NotFound",
    "not found",
    "No cluster found",
    "does not exist",
)
