"""
Relocation module for the image relocator.

Pushes every image in a bundle to a destination registry under a rewritten
name and records the old to new mapping for manifest patching.
"""

import logging
from dataclasses import dataclass, field
from typing import TextIO

import yaml

from .bundle import enumerate_bundle
from .reference import ImageReference, rewrite
from .transfer import TransferEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelocationPair:
    original: ImageReference
    rewritten: ImageReference


@dataclass
class RelocationResult:
    """Ordered original to rewritten reference pairs, one per bundled image."""

    pairs: list[RelocationPair] = field(default_factory=list)

    def __len__(self):
        return len(self.pairs)

    def __iter__(self):
        return iter(self.pairs)

    def to_kustomize_images(self) -> list[dict]:
        """
        Render the mapping as kustomize ``images:`` entries.

        Example:
            [{"name": "app", "newName": "myregistry.io/myns/app", "newTag": "1.2.3"}]
        """
        images = []
        for pair in self.pairs:
            entry = {
                "name": pair.original.repository,
                "newName": pair.rewritten.repository,
            }
            if pair.rewritten.digest:
                entry["digest"] = pair.rewritten.digest
            else:
                entry["newTag"] = pair.rewritten.tag
            images.append(entry)
        return images


def dump_mapping(result: RelocationResult, stream: TextIO) -> None:
    """Write the mapping as a YAML ``images:`` document."""
    yaml.safe_dump({"images": result.to_kustomize_images()}, stream, sort_keys=False)


def relocate(bundle_dir: str, dest_domain: str, dest_namespace: str,
             engine: TransferEngine | None = None) -> RelocationResult:
    """
    Push every bundled image to ``dest_domain/dest_namespace``.

    Entries are processed one at a time in bundle enumeration order. The
    first failed push aborts the run and no mapping is returned, since a
    partially relocated image set must not reach manifest patching.

    Raises:
        OSError: if the bundle cannot be read
        ParseError: if a bundle path does not decode to a reference
        TransferError: on the first failed push, naming that image
    """
    engine = engine or TransferEngine()
    result = RelocationResult()

    for entry in enumerate_bundle(bundle_dir):
        rewritten = rewrite(entry.reference, dest_domain, dest_namespace)
        engine.push(entry.archive_path, rewritten.repository, rewritten.tag, rewritten.digest)
        result.pairs.append(RelocationPair(original=entry.reference, rewritten=rewritten))

    logger.info(f"Relocated {len(result)} images to registry='{dest_domain}', namespace='{dest_namespace}'")
    return result
