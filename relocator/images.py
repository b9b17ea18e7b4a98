"""
Image saving module for the image relocator.

Discovers the images referenced by a manifest tree and saves each distinct
image once into a bundle.
"""

import logging
import os

from .bundle import BundleEntry, path_for
from .manifests import scan_manifests
from .reference import parse_reference
from .transfer import TransferEngine

logger = logging.getLogger(__name__)


def list_images(manifest_dir: str) -> list[str]:
    """Return the sorted distinct image strings referenced under ``manifest_dir``."""
    return sorted(scan_manifests(manifest_dir).unique_images())


def save_images(manifest_dir: str, bundle_dir: str, engine: TransferEngine | None = None,
                seen: set[str] | None = None, resume: bool = False) -> list[BundleEntry]:
    """
    Save every distinct image referenced under ``manifest_dir`` into ``bundle_dir``.

    Args:
        manifest_dir: Root of the manifest tree to scan
        bundle_dir: Bundle root; archives land under ``<bundle_dir>/<format>/``
        engine: Transfer engine (default: skopeo with configured trust policy)
        seen: Canonical references already transferred. Owned by this call
            unless supplied; updated in place as images are saved.
        resume: Treat archives already present in the bundle as saved

    Returns:
        Entries saved by this call, in discovery order

    Raises:
        OSError: if the manifest tree cannot be read
        ParseError: on the first malformed image reference
        TransferError: on the first failed pull; earlier archives stay on disk
    """
    engine = engine or TransferEngine()
    seen = set() if seen is None else seen

    result = scan_manifests(manifest_dir)
    saved = []

    for image in result.images:
        ref = parse_reference(image)
        key = str(ref)
        if key in seen:
            continue

        dest_path = path_for(bundle_dir, ref, engine.image_format)
        if resume and os.path.isfile(dest_path):
            logger.info(f"Skipping {key}: already in bundle at {dest_path}")
            seen.add(key)
            continue

        engine.save(ref, dest_path)
        seen.add(key)
        saved.append(BundleEntry(reference=ref, archive_path=dest_path, format=engine.image_format))

    logger.info(f"Saved {len(saved)} images to {bundle_dir}")
    return saved
