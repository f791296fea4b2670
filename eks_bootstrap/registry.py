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

"""ECR repository lifecycle: create, inspect, delete images, delete repository."""

from __future__ import annotations

import json

import sh
from rich.panel import Panel

from eks_bootstrap import console, logger
from eks_bootstrap.config import AwsConfig, RegistryConfig
from eks_bootstrap.utils import error_text, is_already_exists, is_not_found


def _ecr(aws: AwsConfig, *args: str) -> dict:
    """Run an ``aws ecr`` subcommand in the configured region and parse its JSON output."""
    output = sh.aws("ecr", *args, "--region", aws.aws_region, "--output", "json")
    return json.loads(output) if output.strip() else {}


def describe_repository(aws: AwsConfig, registry: RegistryConfig) -> dict | None:
    """Return the ECR repository description, or None if it does not exist.

    Raises:
        RuntimeError: On any failure other than the repository being absent.
    """
    try:
        result = _ecr(aws, "describe-repositories", "--repository-names", registry.ecr_repo_name)
    except sh.ErrorReturnCode as err:
        message = error_text(err)
        if is_not_found(message):
            return None
        raise RuntimeError(f"Failed to describe repository '{registry.ecr_repo_name}': {message}") from err
    repositories = result.get("repositories", [])
    return repositories[0] if repositories else None


def repository_exists(aws: AwsConfig, registry: RegistryConfig) -> bool:
    return describe_repository(aws, registry) is not None


def create_repository(aws: AwsConfig, registry: RegistryConfig) -> str:
    """Create the ECR repository.

    An existing repository with the same name is reused.

    Args:
        aws: AWS region configuration.
        registry: Repository name configuration.

    Returns:
        The repository ARN.

    Raises:
        RuntimeError: If the repository cannot be created.
    """
    console.print(Panel.fit("Creating ECR repository", style="bold blue"))
    name = registry.ecr_repo_name
    try:
        result = _ecr(aws, "create-repository", "--repository-name", name)
    except sh.ErrorReturnCode as err:
        message = error_text(err)
        if not is_already_exists(message):
            raise RuntimeError(f"Failed to create repository '{name}': {message}") from err
        console.print(f"[yellow]   Repository '{name}' already exists, reusing it[/yellow]")
        existing = describe_repository(aws, registry)
        if existing is None:
            raise RuntimeError(f"Repository '{name}' reported as existing but cannot be described") from err
        return existing["repositoryArn"]

    arn = result["repository"]["repositoryArn"]
    console.print(f"[green]\u2705 Repository created: {arn}[/green]")
    return arn


def list_image_tags(aws: AwsConfig, registry: RegistryConfig) -> list[str]:
    """List the tags present in the repository.

    Returns:
        Sorted tags; empty if the repository is absent or holds no tagged images.
    """
    try:
        result = _ecr(aws, "list-images", "--repository-name", registry.ecr_repo_name,
                      "--filter", "tagStatus=TAGGED")
    except sh.ErrorReturnCode as err:
        message = error_text(err)
        if is_not_found(message):
            return []
        raise RuntimeError(f"Failed to list images in '{registry.ecr_repo_name}': {message}") from err
    return sorted(image["imageTag"] for image in result.get("imageIds", []) if image.get("imageTag"))


def delete_images(aws: AwsConfig, registry: RegistryConfig) -> bool:
    """Delete the configured tag from the repository.

    Returns:
        True if an image was deleted, False if there was nothing to delete.

    Raises:
        RuntimeError: On any failure other than the repository or image being absent.
    """
    name, tag = registry.ecr_repo_name, registry.ecr_image_tag
    console.print(f"[yellow]\u2139\ufe0f  Deleting image '{name}:{tag}'...[/yellow]")
    try:
        result = _ecr(aws, "batch-delete-image", "--repository-name", name, "--image-ids", f"imageTag={tag}")
    except sh.ErrorReturnCode as err:
        message = error_text(err)
        if is_not_found(message):
            console.print("[yellow]\u26a0\ufe0f  No images found in repository[/yellow]")
            return False
        raise RuntimeError(f"Failed to delete images from '{name}': {message}") from err

    for failure in result.get("failures", []):
        logger.info("Image %s not deleted: %s", failure.get("imageId"), failure.get("failureCode"))
    if not result.get("imageIds"):
        console.print("[yellow]\u26a0\ufe0f  No images found in repository[/yellow]")
        return False
    console.print(f"[green]\u2705 Deleted {len(result['imageIds'])} image(s)[/green]")
    return True


def delete_repository(aws: AwsConfig, registry: RegistryConfig) -> bool:
    """Force-delete the repository together with any remaining images.

    Returns:
        True if the repository was deleted, False if it did not exist.

    Raises:
        RuntimeError: On any failure other than the repository being absent.
    """
    name = registry.ecr_repo_name
    console.print(f"[yellow]\u2139\ufe0f  Deleting ECR repository '{name}'...[/yellow]")
    try:
        _ecr(aws, "delete-repository", "--repository-name", name, "--force")
    except sh.ErrorReturnCode as err:
        message = error_text(err)
        if is_not_found(message):
            console.print(f"[yellow]\u26a0\ufe0f  Repository '{name}' not found or already deleted[/yellow]")
            return False
        raise RuntimeError(f"Failed to delete repository '{name}': {message}") from err
    console.print(f"[green]\u2705 Repository '{name}' deleted[/green]")
    return True
