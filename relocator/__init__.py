"""
Container image relocation for air-gapped and private-registry installs.

Scans deployment manifests for container images, saves each distinct image
once into a local bundle, and later pushes the bundle to a destination
registry under rewritten names, producing a mapping for manifest patching.

Features:
    - Docker-style image reference parsing (tags and digests)
    - Best-effort manifest scanning with skip diagnostics
    - Deterministic bundle layout: <format>/<name>/<tag> or <format>/<name>/<alg>/<hex>
    - Single-attempt transfers through skopeo with an explicit trust policy
    - Fail-fast relocation with kustomize-style mapping output
    - Configurable via environment variables

Bundle Layout:
    registry.example.com/app:1.2.3   ->  docker-archive/app/1.2.3
    app@sha256:<hex>                 ->  docker-archive/app/sha256/<hex>
"""

__version__ = "0.1.0"

# Import key components for convenience
from .config import Config
from .errors import ArchiveError, CopyError, ParseError, PolicyError, RelocatorError, TransferError
from .reference import (
    ImageReference,
    parse_reference,
    rewrite,
    archive_path_segments,
    reference_from_segments,
)
from .manifests import ScanResult, SkippedDocument, scan, scan_manifests
from .bundle import BundleEntry, path_for, enumerate_bundle
from .archive import load_archive_manifest
from .transfer import SkopeoCopier, TransferEngine, TrustPolicy
from .images import list_images, save_images
from .relocate import RelocationPair, RelocationResult, dump_mapping, relocate

__all__ = [
    "Config",
    "ArchiveError",
    "CopyError",
    "ParseError",
    "PolicyError",
    "RelocatorError",
    "TransferError",
    "ImageReference",
    "parse_reference",
    "rewrite",
    "archive_path_segments",
    "reference_from_segments",
    "ScanResult",
    "SkippedDocument",
    "scan",
    "scan_manifests",
    "BundleEntry",
    "path_for",
    "enumerate_bundle",
    "load_archive_manifest",
    "SkopeoCopier",
    "TransferEngine",
    "TrustPolicy",
    "list_images",
    "save_images",
    "RelocationPair",
    "RelocationResult",
    "dump_mapping",
    "relocate",
]
