"""
Image reference parsing module for the image relocator.

Parses docker-style image strings into structured references, rewrites them
for a destination registry, and maps them to and from bundle path segments.
"""

import logging
import re
from dataclasses import dataclass, replace

from .config import config
from .errors import ParseError

logger = logging.getLogger(__name__)

DEFAULT_TAG = "latest"

_PATH_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|[-]+)[a-z0-9]+)*"
_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"

NAME_RE = re.compile(rf"^{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*$")
DOMAIN_RE = re.compile(rf"^{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*(?::[0-9]+)?$")
TAG_RE = re.compile(r"^[\w][\w.-]*$")
HEX_RE = re.compile(r"^[0-9a-f]+$")
IDENTIFIER_RE = re.compile(r"^[a-f0-9]{64}$")

# Digest algorithms registries accept, with their hex lengths
_DIGEST_LENGTHS = {"sha256": 64, "sha384": 96, "sha512": 128}


@dataclass(frozen=True)
class ImageReference:
    """
    A parsed container image reference.

    Exactly one of ``tag`` or ``digest`` is set. ``name`` is the repository
    path without the registry domain and without any tag or digest suffix.
    """

    name: str
    domain: str | None = None
    tag: str | None = None
    digest: str | None = None

    def __post_init__(self):
        if (self.tag is None) == (self.digest is None):
            raise ValueError(f"exactly one of tag or digest must be set for {self.name!r}")

    @property
    def repository(self) -> str:
        """Domain-qualified repository name, e.g. ``registry.example.com/app``."""
        if self.domain:
            return f"{self.domain}/{self.name}"
        return self.name

    @property
    def basename(self) -> str:
        return self.name.rsplit("/", 1)[-1]

    def __str__(self):
        if self.digest:
            return f"{self.repository}@{self.digest}"
        return f"{self.repository}:{self.tag}"


def validate_image_name(name: str) -> None:
    """
    Validate the repository path of an image reference.

    Args:
        name: Repository path without domain (e.g., "library/nginx")

    Raises:
        ParseError: if name is empty, too long, or has invalid characters

    Validation Rules:
        - Must be 1-{MAX_IMAGE_NAME_LENGTH} characters (configurable)
        - Slash-separated lowercase alphanumeric components
        - Components may be joined internally by ".", "_", "__" or runs of "-"
    """
    if not name or len(name) > config.MAX_IMAGE_NAME_LENGTH:
        logger.debug(f"Invalid image name length: {len(name)}")
        raise ParseError(name, f"name must be 1-{config.MAX_IMAGE_NAME_LENGTH} characters")

    if not NAME_RE.match(name):
        logger.debug(f"Invalid image name format: {name}")
        raise ParseError(name, "name may only contain lowercase alphanumeric components separated by '/'")


def validate_tag(tag: str) -> None:
    """
    Validate container image tag.

    Raises:
        ParseError: if tag is empty, too long, or has invalid characters

    Validation Rules:
        - Must be 1-{MAX_TAG_LENGTH} characters (configurable)
        - Word characters, dots (.) and hyphens (-), not starting with . or -
    """
    if not tag or len(tag) > config.MAX_TAG_LENGTH:
        logger.debug(f"Invalid tag length: {len(tag)}")
        raise ParseError(tag, f"tag must be 1-{config.MAX_TAG_LENGTH} characters")

    if not TAG_RE.match(tag):
        logger.debug(f"Invalid tag format: {tag}")
        raise ParseError(tag, "tag may only contain alphanumerics, underscores, dots and hyphens")


def validate_digest(digest: str) -> None:
    """
    Validate a content digest of the form ``<algorithm>:<hex>``.

    The algorithm must be sha256, sha384 or sha512 and the hex part must
    have exactly that algorithm's length (e.g. sha256:<64 hex characters>).

    Raises:
        ParseError: if digest is malformed
    """
    algorithm, sep, encoded = digest.partition(":")
    if not sep or algorithm not in _DIGEST_LENGTHS or not HEX_RE.match(encoded):
        raise ParseError(digest, "digest must be sha256, sha384 or sha512 followed by lowercase hex")

    expected = _DIGEST_LENGTHS[algorithm]
    if len(encoded) != expected:
        raise ParseError(digest, f"{algorithm} digest must be {expected} hex characters")


def _split_domain(remainder: str) -> tuple[str | None, str]:
    # The first component is a registry host only if it looks like one
    head, sep, tail = remainder.partition("/")
    if not sep:
        return None, remainder
    if "." in head or ":" in head or head == "localhost" or head.lower() != head:
        return head, tail
    return None, remainder


def parse_reference(raw: str) -> ImageReference:
    """
    Parse a docker-style image string.

    Accepts ``[domain/]name[:tag]`` and ``[domain/]name@algorithm:hex``.
    When both a tag and a digest are present the digest wins and the tag is
    dropped; when neither is present the tag defaults to "latest".

    Args:
        raw: Image string as found in a manifest

    Returns:
        ImageReference

    Raises:
        ParseError: if the string is not a named or digest reference

    Examples:
        >>> parse_reference("registry.example.com/app:1.2.3")
        ImageReference(name='app', domain='registry.example.com', tag='1.2.3', digest=None)

        >>> str(parse_reference("nginx"))
        'nginx:latest'
    """
    if not raw or raw.strip() != raw:
        raise ParseError(raw, "reference must be a non-empty string without surrounding whitespace")

    if IDENTIFIER_RE.match(raw):
        raise ParseError(raw, "bare image IDs are not named references")

    tag = None
    digest = None

    remainder, at, suffix = raw.partition("@")
    colon = remainder.rfind(":")
    if colon > remainder.rfind("/"):
        remainder, tag = remainder[:colon], remainder[colon + 1:]
    domain, name = _split_domain(remainder)

    try:
        if at:
            validate_digest(suffix)
            digest = suffix
        if tag is not None:
            validate_tag(tag)
        if domain is not None and not DOMAIN_RE.match(domain):
            raise ParseError(domain, "invalid registry domain")
        validate_image_name(name)
    except ParseError as e:
        raise ParseError(raw, e.reason) from e

    if len(remainder) > config.MAX_IMAGE_NAME_LENGTH:
        raise ParseError(raw, f"repository name must be at most {config.MAX_IMAGE_NAME_LENGTH} characters")

    if digest:
        tag = None
    elif tag is None:
        tag = DEFAULT_TAG

    ref = ImageReference(name=name, domain=domain, tag=tag, digest=digest)
    logger.debug(f"Parsed image reference {raw!r} -> {ref!r}")
    return ref


def rewrite(ref: ImageReference, dest_domain: str, dest_namespace: str) -> ImageReference:
    """
    Return a copy of ``ref`` relocated under a destination registry.

    The new name is ``<dest_namespace>/<basename of ref.name>``; the domain
    becomes ``dest_domain`` (or none when empty). Tag or digest is preserved.

    Example:
        >>> str(rewrite(parse_reference("quay.io/org/app:1"), "myregistry.io", "myns"))
        'myregistry.io/myns/app:1'
    """
    namespace = dest_namespace.strip("/")
    name = f"{namespace}/{ref.basename}" if namespace else ref.basename
    return replace(ref, domain=dest_domain or None, name=name)


def archive_path_segments(ref: ImageReference) -> list[str]:
    """
    Bundle addressing segments for a reference.

    Returns ``[name, tag]`` for tagged references and
    ``[name, algorithm, hex]`` for digest references. The domain is not part
    of the address, so references differing only by registry collide.
    """
    if ref.digest:
        return [ref.name, *ref.digest.split(":", 1)]
    return [ref.name, ref.tag]


def _is_digest(algorithm: str, encoded: str) -> bool:
    expected = _DIGEST_LENGTHS.get(algorithm)
    return expected is not None and len(encoded) == expected and bool(HEX_RE.match(encoded))


def reference_from_segments(parts: list[str]) -> ImageReference:
    """
    Recover a reference from bundle path components.

    ``parts`` are the directory components below the format prefix, with
    a multi-component name spread over several directories, e.g.
    ``["library", "nginx", "1.25"]`` or ``["app", "sha256", "<hex>"]``.
    The trailing pair is read as a digest only when it is a known algorithm
    followed by hex of exactly that algorithm's length, so hex tags such as
    git commit SHAs stay tags.

    Raises:
        ParseError: if the components do not decode to a valid reference
    """
    joined = "/".join(parts)
    if len(parts) >= 3 and _is_digest(parts[-2], parts[-1]):
        name = "/".join(parts[:-2])
        digest = f"{parts[-2]}:{parts[-1]}"
        validate_image_name(name)
        validate_digest(digest)
        return ImageReference(name=name, digest=digest)

    if len(parts) < 2:
        raise ParseError(joined, "bundle path must contain a name and a tag or digest")

    name = "/".join(parts[:-1])
    tag = parts[-1]
    validate_image_name(name)
    validate_tag(tag)
    return ImageReference(name=name, tag=tag)
