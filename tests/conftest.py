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

"""Pytest configuration and shared fixtures."""

from collections.abc import Callable, Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import sh
from pydantic import SecretStr

from eks_bootstrap.config import (
    ArgoCDConfig,
    AwsConfig,
    BootstrapSettings,
    ClusterConfig,
    RegistryConfig,
    WorkspaceConfig,
)

CONFIG_ENV_VARS = (
    "AWS_REGION",
    "AWS_ACCOUNT_ID",
    "ECR_REPO_NAME",
    "ECR_IMAGE_TAG",
    "EKS_CLUSTER_NAME",
    "SSH_KEY_NAME",
    "EKS_NODE_COUNT",
    "EKS_NODE_TYPE",
    "EKS_WITH_OIDC",
    "ARGOCD_NAMESPACE",
    "ARGOCD_MANIFEST_URL",
    "ARGOCD_LOCAL_PORT",
    "ARGOCD_ADMIN_PASSWORD",
    "BOOTSTRAP_WORK_DIR",
    "SOURCE_REPO_URL",
    "SOURCE_DIR",
)

TEST_ACCOUNT_ID = "123456789012"


@pytest.fixture(autouse=True)
def clean_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's shell environment out of config resolution."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path: Path) -> BootstrapSettings:
    """Provide settings with a resolved account id and a temporary work dir."""
    return BootstrapSettings(
        aws=AwsConfig(aws_region="us-east-1", aws_account_id=TEST_ACCOUNT_ID),
        registry=RegistryConfig(ecr_repo_name="beginner2master-app"),
        cluster=ClusterConfig(eks_cluster_name="demo-cluster", ssh_key_name="t2s-ssh-key"),
        argocd=ArgoCDConfig(argocd_namespace="argocd", argocd_admin_password=SecretStr("s3cret-pw")),
        workspace=WorkspaceConfig(bootstrap_work_dir=tmp_path),
    )


@pytest.fixture
def patch_sh() -> Iterator[Callable[[str], MagicMock]]:
    """Replace the ``sh`` module inside a domain module with a mock.

    The mock keeps the real ``ErrorReturnCode`` classes so ``except`` clauses
    in the code under test still work.
    """
    patchers = []

    def _patch(module: str) -> MagicMock:
        mock_sh = MagicMock(name=f"{module}.sh")
        mock_sh.ErrorReturnCode = sh.ErrorReturnCode
        mock_sh.ErrorReturnCode_1 = sh.ErrorReturnCode_1
        patcher = patch(f"{module}.sh", mock_sh)
        patcher.start()
        patchers.append(patcher)
        return mock_sh

    yield _patch
    for patcher in patchers:
        patcher.stop()


@pytest.fixture
def sh_error() -> Callable[..., sh.ErrorReturnCode]:
    """Build a failed-command exception carrying the given stderr."""

    def _make(stderr: str = "", stdout: str = "", cmd: str = "aws") -> sh.ErrorReturnCode:
        return sh.ErrorReturnCode_1(cmd, stdout.encode(), stderr.encode())

    return _make
