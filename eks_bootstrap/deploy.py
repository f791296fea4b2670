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

"""Application manifest rendering and apply."""

from __future__ import annotations

import tempfile
from collections.abc import Iterable
from pathlib import Path

import sh
import yaml
from rich.panel import Panel

from eks_bootstrap import console, logger
from eks_bootstrap.config import RegistryConfig
from eks_bootstrap.constants import APP_MANIFESTS, WORKLOAD_KINDS
from eks_bootstrap.utils import error_text


def _image_repository(image: str) -> str:
    """Strip digest and tag from an image reference.

    Args:
        image: Image reference (e.g. ``1234.dkr.ecr.us-east-1.amazonaws.com/app:latest``).

    Returns:
        The repository part (``1234.dkr.ecr.us-east-1.amazonaws.com/app``).
    """
    name = image.split("@", 1)[0]
    last_slash = name.rfind("/")
    colon = name.rfind(":")
    if colon > last_slash:
        name = name[:colon]
    return name


def _matches_repo(image: str, repo_name: str) -> bool:
    repository = _image_repository(image)
    return repository == repo_name or repository.endswith(f"/{repo_name}")


def _pod_spec(doc: dict) -> dict | None:
    if doc.get("kind") == "Pod":
        return doc.get("spec")
    return (((doc.get("spec") or {}).get("template") or {}).get("spec"))


def render_manifest(path: Path, repo_name: str, image_uri: str) -> list[dict]:
    """Load a manifest and point the application's containers at the pushed image.

    Containers in workload kinds whose image repository ends with
    *repo_name* are rewritten to *image_uri*; every other document and
    container is returned unchanged.

    Args:
        path: Multi-document YAML manifest.
        repo_name: ECR repository name identifying the application image.
        image_uri: Fully qualified image reference to substitute.

    Returns:
        The rendered documents (empty documents dropped).
    """
    with open(path) as f:
        docs = [doc for doc in yaml.safe_load_all(f) if doc]

    for doc in docs:
        if doc.get("kind") not in WORKLOAD_KINDS:
            continue
        spec = _pod_spec(doc) or {}
        for key in ("initContainers", "containers"):
            for container in spec.get(key) or []:
                image = container.get("image", "")
                if image and image != image_uri and _matches_repo(image, repo_name):
                    logger.info("%s/%s: %s -> %s", doc["kind"], container.get("name"), image, image_uri)
                    container["image"] = image_uri
    return docs


def _kubectl_apply(path: Path) -> None:
    try:
        output = sh.kubectl("apply", "-f", str(path))
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Failed to apply {path.name}: {error_text(err)}") from err
    for line in str(output).splitlines():
        console.print(f"[green]  \u2713 {line}[/green]")


def apply_manifests(
    source_dir: Path,
    registry: RegistryConfig,
    image_uri: str | None = None,
    names: Iterable[str] = APP_MANIFESTS,
) -> None:
    """Apply the application manifests in order.

    Args:
        source_dir: Checkout containing the manifests.
        registry: Repository name used to recognise the application image.
        image_uri: Pushed image to substitute, or None to apply the files verbatim.
        names: Manifest file names relative to *source_dir*.

    Raises:
        RuntimeError: If a manifest is missing or kubectl apply fails.
    """
    console.print(Panel.fit("Deploying application", style="bold blue"))
    for name in names:
        path = source_dir / name
        if not path.exists():
            raise RuntimeError(f"Manifest {path} not found")

        if image_uri is None:
            _kubectl_apply(path)
            continue

        docs = render_manifest(path, registry.ecr_repo_name, image_uri)
        tmp = tempfile.NamedTemporaryFile("w", delete=False, suffix=f"-{name}")
        try:
            yaml.safe_dump_all(docs, tmp, default_flow_style=False, sort_keys=False)
            tmp.close()
            _kubectl_apply(Path(tmp.name))
        finally:
            tmp.close()
            Path(tmp.name).unlink(missing_ok=True)
    console.print("[green]\u2705 Application manifests applied[/green]")
