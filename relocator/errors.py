"""
Exception types raised by the image relocator.

Filesystem failures are not wrapped: unreadable manifests and bundle
directories surface as the original OSError.
"""


class RelocatorError(Exception):
    """Base class for all relocator failures."""


class ParseError(RelocatorError, ValueError):
    """Raised when an image reference string or bundle path cannot be decoded."""

    def __init__(self, value: str, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"failed to parse image reference {value!r}: {reason}")


class CopyError(RelocatorError):
    """Raised when the registry copy tool fails to copy an image."""

    def __init__(self, source: str, destination: str, detail: str):
        self.source = source
        self.destination = destination
        self.detail = detail
        super().__init__(f"failed to copy {source} to {destination}: {detail}")


class TransferError(RelocatorError):
    """
    Raised when saving or pushing one image fails.

    Attributes:
        image: The image being transferred (source reference for pulls,
            destination reference for pushes)
        direction: "pull" or "push"
    """

    def __init__(self, image: str, direction: str, detail: str):
        self.image = image
        self.direction = direction
        self.detail = detail
        super().__init__(f"failed to {direction} image {image}: {detail}")


class ArchiveError(RelocatorError):
    """Raised when a bundle archive is not a readable docker-archive image."""

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"invalid image archive {path}: {detail}")


class PolicyError(RelocatorError):
    """Raised when a trust policy file cannot be decoded."""

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"invalid trust policy {path}: {detail}")
