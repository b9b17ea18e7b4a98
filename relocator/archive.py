"""
Docker-archive inspection module for the image relocator.

Reads the metadata of bundled image tarballs without loading layer data
into memory.
"""

import hashlib
import json
import logging
import tarfile
from functools import lru_cache

from .errors import ArchiveError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


def _digest_member(tar: tarfile.TarFile, member_name: str) -> tuple[str, int]:
    # Stream in chunks so large layers never sit in memory
    h = hashlib.sha256()
    size = 0
    try:
        f = tar.extractfile(member_name)
    except KeyError:
        raise ArchiveError(tar.name, f"missing member: {member_name}") from None
    if f is None:
        raise ArchiveError(tar.name, f"member is not a regular file: {member_name}")
    for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
        h.update(chunk)
        size += len(chunk)
    return "sha256:" + h.hexdigest(), size


@lru_cache(maxsize=64)
def load_archive_manifest(tar_path: str) -> dict:
    """
    Load image metadata from a docker-archive tarball.

    Args:
        tar_path: Path to a docker-archive image (plain or gzip-compressed)

    Returns:
        Dictionary with structure:
        {
            "config": {"name": str, "digest": str, "size": int},
            "layers": [{"name": str, "digest": str, "size": int}, ...],
            "repo_tags": [str, ...],
            "total_size": int
        }

    Raises:
        OSError: if the file cannot be read
        tarfile.TarError: if the file is not a tar archive
        ArchiveError: if manifest.json is missing or malformed, or names
            members the archive does not contain
    """
    logger.debug(f"Loading archive manifest from {tar_path}")

    with tarfile.open(tar_path, "r") as tar:
        try:
            manifest_member = tar.getmember("manifest.json")
        except KeyError:
            raise ArchiveError(tar_path, "no manifest.json") from None

        try:
            manifest_data = json.load(tar.extractfile(manifest_member))[0]
            config_name = manifest_data["Config"]
            layer_files = manifest_data["Layers"]
        except (ValueError, LookupError, TypeError) as e:
            raise ArchiveError(tar_path, f"malformed manifest.json: {e}") from e

        logger.debug(f"Found config: {config_name}, layers: {len(layer_files)}")

        config_digest, config_size = _digest_member(tar, config_name)

        layers = []
        total_size = config_size
        for idx, layer_name in enumerate(layer_files, 1):
            digest, size = _digest_member(tar, layer_name)
            total_size += size
            logger.debug(f"Layer {idx}/{len(layer_files)}: {digest}, size: {size} bytes")
            layers.append({
                "name": layer_name,
                "digest": digest,
                "size": size,
            })

    return {
        "config": {
            "name": config_name,
            "digest": config_digest,
            "size": config_size,
        },
        "layers": layers,
        "repo_tags": list(manifest_data.get("RepoTags") or []),
        "total_size": total_size,
    }
