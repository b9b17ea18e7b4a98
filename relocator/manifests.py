"""
Manifest scanning module for the image relocator.

Walks a tree of deployment manifests and extracts the container images
referenced by pod templates.

Only one shape is checked:

    spec:
      template:
        spec:
          containers:
            - image: <image>

Documents of any other shape are skipped and reported, never treated as
errors. Images referenced from other shapes (bare Pods, CronJobs, custom
resources) are not discovered.
"""

import logging
import os
import re
from dataclasses import dataclass, field

import yaml

logger = logging.getLogger(__name__)

DOCUMENT_SEPARATOR = re.compile(r"^---[ \t]*$", re.MULTILINE)

# Skip reasons
UNDECODABLE = "undecodable"
EMPTY = "empty"
NOT_A_MAPPING = "not-a-mapping"
NO_POD_TEMPLATE = "no-pod-template"
NO_CONTAINERS = "no-containers"
CONTAINER_WITHOUT_IMAGE = "container-without-image"


@dataclass(frozen=True)
class SkippedDocument:
    """A manifest document whose images were not extracted."""

    path: str
    index: int
    reason: str
    detail: str = ""


@dataclass
class ScanResult:
    """Images discovered under a manifest tree, in discovery order."""

    images: list[str] = field(default_factory=list)
    skipped: list[SkippedDocument] = field(default_factory=list)

    def unique_images(self) -> set[str]:
        return set(self.images)


def split_documents(contents: str) -> list[str]:
    """Split a multi-document manifest on lines containing only ``---``."""
    return DOCUMENT_SEPARATOR.split(contents)


def _pod_spec(doc: dict) -> dict | None:
    spec = doc.get("spec")
    if not isinstance(spec, dict):
        return None
    template = spec.get("template")
    if not isinstance(template, dict):
        return None
    pod_spec = template.get("spec")
    if not isinstance(pod_spec, dict):
        return None
    return pod_spec


def extract_images(document: str) -> tuple[list[str], str | None, str]:
    """
    Extract container images from a single manifest document.

    Returns:
        Tuple of (images, skip_reason, detail). ``skip_reason`` is None when
        the document matched the pod template shape and every container
        carried an image.
    """
    try:
        doc = yaml.safe_load(document)
    except yaml.YAMLError as e:
        return [], UNDECODABLE, str(e).splitlines()[0]

    if doc is None:
        return [], EMPTY, ""
    if not isinstance(doc, dict):
        return [], NOT_A_MAPPING, type(doc).__name__

    pod_spec = _pod_spec(doc)
    if pod_spec is None:
        return [], NO_POD_TEMPLATE, str(doc.get("kind", ""))

    containers = pod_spec.get("containers")
    if not isinstance(containers, list) or not containers:
        return [], NO_CONTAINERS, str(doc.get("kind", ""))

    images = []
    missing = 0
    for container in containers:
        image = container.get("image") if isinstance(container, dict) else None
        if isinstance(image, str) and image:
            images.append(image)
        else:
            missing += 1

    if missing:
        return images, CONTAINER_WITHOUT_IMAGE, f"{missing} of {len(containers)} containers"
    return images, None, ""


def scan_file(path: str, result: ScanResult) -> None:
    """Scan one manifest file into ``result``. OSError propagates."""
    with open(path, "rb") as f:
        raw = f.read()

    try:
        contents = raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug(f"Skipping non-text file: {path}")
        result.skipped.append(SkippedDocument(path, 0, UNDECODABLE, "not UTF-8 text"))
        return

    for index, document in enumerate(split_documents(contents)):
        images, reason, detail = extract_images(document)
        result.images.extend(images)
        for image in images:
            logger.debug(f"Found image {image} in {path} (document {index})")

        if reason is None:
            continue
        result.skipped.append(SkippedDocument(path, index, reason, detail))
        if reason == CONTAINER_WITHOUT_IMAGE:
            logger.warning(f"Container without image in {path} (document {index}): {detail}")
        else:
            logger.debug(f"Skipping document {index} of {path}: {reason} {detail}".rstrip())


def _raise(err: OSError) -> None:
    raise err


def scan_manifests(root_dir: str) -> ScanResult:
    """
    Recursively scan every regular file under ``root_dir``.

    Files are visited in sorted order. Documents that do not match the pod
    template shape are recorded in ``ScanResult.skipped``.

    Raises:
        OSError: if the directory or any file cannot be read
    """
    if not os.path.isdir(root_dir):
        raise NotADirectoryError(f"manifest directory not found: {root_dir}")

    result = ScanResult()
    for dirpath, dirnames, filenames in os.walk(root_dir, onerror=_raise):
        dirnames.sort()
        for filename in sorted(filenames):
            path = os.path.join(dirpath, filename)
            if not os.path.isfile(path):
                continue
            scan_file(path, result)

    logger.info(
        f"Scanned {root_dir}: {len(result.images)} image references, "
        f"{len(result.skipped)} documents skipped"
    )
    return result


def scan(root_dir: str) -> set[str]:
    """Return the distinct image strings referenced under ``root_dir``."""
    return scan_manifests(root_dir).unique_images()
