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

"""Image pipeline: ECR login, docker build, tag, and push."""

from __future__ import annotations

from pathlib import Path

import docker
import sh
from rich.panel import Panel

from eks_bootstrap import console, logger
from eks_bootstrap.config import AwsConfig, RegistryConfig, image_uri, registry_host
from eks_bootstrap.constants import ECR_LOGIN_USERNAME
from eks_bootstrap.utils import error_text


def get_login_password(aws: AwsConfig) -> str:
    """Exchange AWS credentials for a short-lived ECR registry password.

    Raises:
        RuntimeError: If the AWS CLI cannot issue a password.
    """
    try:
        password = str(sh.aws("ecr", "get-login-password", "--region", aws.aws_region)).strip()
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Failed to get ECR login password: {error_text(err)}") from err
    if not password:
        raise RuntimeError("ECR returned an empty login password")
    return password


def _login(docker_client: docker.DockerClient, host: str, password: str) -> dict:
    """Log the Docker client into ECR and return the auth config used for pushes."""
    auth_config = {"username": ECR_LOGIN_USERNAME, "password": password}
    console.print(f"[yellow]\u2139\ufe0f  Authenticating Docker with {host}...[/yellow]")
    docker_client.login(registry=host, **auth_config)
    console.print("[green]\u2705 Docker authenticated with ECR[/green]")
    return auth_config


def _build(docker_client: docker.DockerClient, context_dir: Path, local_tag: str):
    """Build the image from the local build context."""
    console.print(f"[yellow]\u2139\ufe0f  Building image {local_tag} from {context_dir}...[/yellow]")
    image, build_logs = docker_client.images.build(path=str(context_dir), tag=local_tag, rm=True)
    for chunk in build_logs:
        if "stream" in chunk:
            logger.debug("  %s", chunk["stream"].rstrip())
    console.print(f"[green]\u2705 Built {local_tag}[/green]")
    return image


def _push(docker_client: docker.DockerClient, repository: str, tag: str, auth_config: dict) -> None:
    """Push a tag and surface errors reported inside the push stream.

    Raises:
        RuntimeError: If the registry reports an error for any layer.
    """
    console.print(f"[yellow]\u2139\ufe0f  Pushing {repository}:{tag}...[/yellow]")
    for line in docker_client.images.push(
        repository, tag=tag, auth_config=auth_config, stream=True, decode=True
    ):
        if "error" in line:
            raise RuntimeError(f"Push of {repository}:{tag} failed: {line['error']}")
        if line.get("status") and line.get("id") is None:
            logger.info("  %s", line["status"])
    console.print(f"[green]\u2705 Pushed {repository}:{tag}[/green]")


def build_and_push(aws: AwsConfig, registry: RegistryConfig, context_dir: Path) -> str:
    """Authenticate, build, tag, and push the application image.

    Stages run strictly in order; a failure at any stage aborts the rest.

    Args:
        aws: AWS configuration with a resolved account id.
        registry: Repository name and tag.
        context_dir: Docker build context (the cloned source directory).

    Returns:
        The pushed image reference (``<host>/<repo>:<tag>``).

    Raises:
        RuntimeError: If any stage fails.
    """
    console.print(Panel.fit("Building and pushing application image", style="bold blue"))
    if not (context_dir / "Dockerfile").exists():
        raise RuntimeError(f"No Dockerfile found in build context {context_dir}")

    target = image_uri(aws, registry)
    host = registry_host(aws.aws_account_id, aws.aws_region)
    remote_repository = f"{host}/{registry.ecr_repo_name}"
    local_tag = f"{registry.ecr_repo_name}:{registry.ecr_image_tag}"
    password = get_login_password(aws)

    try:
        docker_client = docker.from_env()
    except docker.errors.DockerException as err:
        raise RuntimeError(f"Failed to connect to Docker: {err}") from err

    try:
        auth_config = _login(docker_client, host, password)
        image = _build(docker_client, context_dir, local_tag)
        image.tag(remote_repository, tag=registry.ecr_image_tag)
        _push(docker_client, remote_repository, registry.ecr_image_tag, auth_config)
    except docker.errors.BuildError as err:
        for chunk in err.build_log:
            if "stream" in chunk:
                logger.error("  %s", chunk["stream"].rstrip())
        raise RuntimeError(f"Docker build failed: {err.msg}") from err
    except docker.errors.APIError as err:
        raise RuntimeError(f"Docker API error: {err}") from err
    finally:
        docker_client.close()

    return target
