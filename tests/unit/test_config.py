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

"""Unit tests for configuration resolution and derived values."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from eks_bootstrap.config import (
    AwsConfig,
    ClusterConfig,
    RegistryConfig,
    display_settings,
    image_uri,
    key_file,
    registry_host,
    resolve_settings,
    source_path,
    state_dir,
)


class TestDefaults:
    """Tests for built-in defaults."""

    def test_defaults(self) -> None:
        """Test resolved defaults."""
        settings = resolve_settings()

        assert settings.aws.aws_region == "us-east-1"
        assert settings.aws.aws_account_id is None
        assert settings.registry.ecr_repo_name == "beginner2master-app"
        assert settings.registry.ecr_image_tag == "latest"
        assert settings.cluster.eks_cluster_name == "demo-cluster"
        assert settings.cluster.ssh_key_name == "t2s-ssh-key"
        assert settings.cluster.eks_node_count == 2
        assert settings.cluster.eks_node_type == "t3.medium"
        assert settings.argocd.argocd_namespace == "argocd"
        assert settings.argocd.argocd_local_port == 8080
        assert settings.workspace.source_dir == "argocd-kubernetes-aws"

    def test_default_password_logs_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test the built-in admin password is flagged."""
        with caplog.at_level("WARNING", logger="eks_bootstrap"):
            resolve_settings()

        assert "ARGOCD_ADMIN_PASSWORD" in caplog.text

    def test_custom_password_does_not_warn(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test no warning when the password is overridden."""
        monkeypatch.setenv("ARGOCD_ADMIN_PASSWORD", "something-else")

        with caplog.at_level("WARNING", logger="eks_bootstrap"):
            settings = resolve_settings()

        assert "ARGOCD_ADMIN_PASSWORD" not in caplog.text
        assert settings.argocd.argocd_admin_password.get_secret_value() == "something-else"


class TestResolution:
    """Tests for CLI > env > default resolution."""

    def test_env_overrides_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test environment variables are picked up."""
        monkeypatch.setenv("EKS_CLUSTER_NAME", "env-cluster")
        monkeypatch.setenv("AWS_REGION", "eu-west-1")

        settings = resolve_settings()

        assert settings.cluster.eks_cluster_name == "env-cluster"
        assert settings.aws.aws_region == "eu-west-1"

    def test_cli_overrides_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test CLI overrides win over environment variables."""
        monkeypatch.setenv("EKS_CLUSTER_NAME", "env-cluster")

        settings = resolve_settings(cluster_name="cli-cluster")

        assert settings.cluster.eks_cluster_name == "cli-cluster"

    def test_none_overrides_are_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test None values leave env/default values alone."""
        monkeypatch.setenv("ARGOCD_NAMESPACE", "gitops")

        settings = resolve_settings(namespace=None, region=None)

        assert settings.argocd.argocd_namespace == "gitops"
        assert settings.aws.aws_region == "us-east-1"

    def test_work_dir_override(self, tmp_path: Path) -> None:
        """Test work dir override is applied to the workspace config."""
        settings = resolve_settings(work_dir=tmp_path)

        assert settings.workspace.bootstrap_work_dir == tmp_path

    def test_unknown_override_raises(self) -> None:
        """Test unknown override names are rejected."""
        with pytest.raises(ValueError, match="bogus"):
            resolve_settings(bogus="x")

    def test_invalid_override_is_validated(self) -> None:
        """Test CLI overrides go through field validation."""
        with pytest.raises(ValidationError):
            resolve_settings(node_count=0)


class TestValidation:
    """Tests for field validation."""

    @pytest.mark.parametrize("region", ["us-east-1", "eu-central-1", "ap-southeast-2", "us-gov-west-1"])
    def test_valid_regions(self, region: str) -> None:
        assert AwsConfig(aws_region=region).aws_region == region

    @pytest.mark.parametrize("region", ["", "useast1", "US-EAST-1", "us-east"])
    def test_invalid_regions(self, region: str) -> None:
        with pytest.raises(ValidationError):
            AwsConfig(aws_region=region)

    def test_account_id_must_be_twelve_digits(self) -> None:
        with pytest.raises(ValidationError):
            AwsConfig(aws_account_id="12342321123")

    @pytest.mark.parametrize("name", ["Upper", "-leading", "a", "trailing-"])
    def test_invalid_repository_names(self, name: str) -> None:
        with pytest.raises(ValidationError):
            RegistryConfig(ecr_repo_name=name)

    def test_namespaced_repository_name(self) -> None:
        assert RegistryConfig(ecr_repo_name="team/app").ecr_repo_name == "team/app"

    def test_invalid_cluster_name(self) -> None:
        with pytest.raises(ValidationError):
            ClusterConfig(eks_cluster_name="1-starts-with-digit")

    def test_key_name_rejects_path(self) -> None:
        with pytest.raises(ValidationError):
            ClusterConfig(ssh_key_name="../escape")

    def test_invalid_namespace(self) -> None:
        with pytest.raises(ValidationError):
            resolve_settings(namespace="Not_A_Label")


class TestDerivedValues:
    """Tests for derived paths and references."""

    def test_registry_host(self) -> None:
        assert registry_host("123456789012", "us-east-1") == "123456789012.dkr.ecr.us-east-1.amazonaws.com"

    def test_image_uri(self, settings) -> None:
        assert image_uri(settings.aws, settings.registry) == (
            "123456789012.dkr.ecr.us-east-1.amazonaws.com/beginner2master-app:latest"
        )

    def test_image_uri_requires_account(self, settings) -> None:
        with pytest.raises(RuntimeError, match="account id"):
            image_uri(AwsConfig(), settings.registry)

    def test_local_paths(self, settings, tmp_path: Path) -> None:
        assert key_file(settings.cluster, settings.workspace) == tmp_path / "t2s-ssh-key.pem"
        assert source_path(settings.workspace) == tmp_path / "argocd-kubernetes-aws"
        assert state_dir(settings.workspace) == tmp_path / ".eks-bootstrap"


class TestDisplay:
    """Tests for configuration display."""

    def test_password_is_masked(self, settings, capsys: pytest.CaptureFixture) -> None:
        display_settings(settings)

        err = capsys.readouterr().err
        assert "demo-cluster" in err
        assert "s3cret-pw" not in err
        assert "**********" in err
