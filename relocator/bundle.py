"""
Bundle layout module for the image relocator.

A bundle is a directory tree of image archives addressed by reference:

    <bundle_dir>/<format>/<name...>/<tag>
    <bundle_dir>/<format>/<name...>/<algorithm>/<hex>

e.g. docker-archive/app/1.2.3 or docker-archive/library/nginx/sha256/<hex>.
"""

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass

from .reference import ImageReference, archive_path_segments, reference_from_segments

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".partial"


@dataclass(frozen=True)
class BundleEntry:
    """One image archive stored in a bundle."""

    reference: ImageReference
    archive_path: str
    format: str


def path_for(bundle_dir: str, ref: ImageReference, format_prefix: str) -> str:
    """
    Deterministic archive path for ``ref`` inside ``bundle_dir``.

    References differing only in registry domain map to the same path.
    """
    return os.path.join(bundle_dir, format_prefix, *archive_path_segments(ref))


def _raise(err: OSError) -> None:
    raise err


def enumerate_bundle(bundle_dir: str) -> Iterator[BundleEntry]:
    """
    Yield every archive stored under ``bundle_dir``.

    Each top-level directory is a format prefix; every regular file below it
    is one image. Directories and files are walked in sorted order, so
    re-enumerating the same bundle yields the same entries. Unfinished
    ``.partial`` archives are ignored.

    Raises:
        OSError: if the bundle cannot be read
        ParseError: if a file's location does not decode to a reference
    """
    for format_name in sorted(os.listdir(bundle_dir)):
        format_root = os.path.join(bundle_dir, format_name)
        if not os.path.isdir(format_root):
            continue

        for dirpath, dirnames, filenames in os.walk(format_root, onerror=_raise):
            dirnames.sort()
            for filename in sorted(filenames):
                if filename.endswith(PARTIAL_SUFFIX):
                    logger.debug(f"Ignoring unfinished archive {filename} in {dirpath}")
                    continue

                path = os.path.join(dirpath, filename)
                parts = os.path.relpath(path, format_root).split(os.sep)
                ref = reference_from_segments(parts)
                yield BundleEntry(reference=ref, archive_path=path, format=format_name)
