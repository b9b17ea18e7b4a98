"""
Image transfer module for the image relocator.

Pulls images from registries into bundle archives and pushes bundle
archives to registries. The byte-level transfer is delegated to skopeo,
which publishes a destination tag only after the full image is copied.
"""

import json
import logging
import os
import subprocess
import tempfile
import threading
from typing import Protocol

from .bundle import PARTIAL_SUFFIX
from .config import config
from .errors import CopyError, PolicyError, TransferError
from .reference import ImageReference

logger = logging.getLogger(__name__)

REGISTRY_TRANSPORT = "docker://"
ACCEPT_ANY = "acceptAny"


class TrustPolicy:
    """
    Signature trust policy handed to the copy tool.

    ``TrustPolicy.accept_any()`` accepts every source image as-is and is the
    default for relocation; it performs no signature verification. Any
    containers-policy.json document can be substituted with ``from_file``.
    """

    def __init__(self, name: str, document: dict):
        self.name = name
        self.document = document

    @classmethod
    def accept_any(cls) -> "TrustPolicy":
        return cls(ACCEPT_ANY, {"default": [{"type": "insecureAcceptAnything"}]})

    @classmethod
    def from_file(cls, path: str) -> "TrustPolicy":
        """
        Load a containers-policy.json document.

        Raises:
            OSError: if the file cannot be read
            PolicyError: if the file is not a JSON object
        """
        with open(path) as f:
            try:
                document = json.load(f)
            except ValueError as e:
                raise PolicyError(path, str(e)) from e
        if not isinstance(document, dict):
            raise PolicyError(path, "policy must be a JSON object")
        return cls(path, document)

    @classmethod
    def from_setting(cls, value: str) -> "TrustPolicy":
        """Build a policy from a TRUST_POLICY value: "acceptAny" or a file path."""
        if value == ACCEPT_ANY:
            return cls.accept_any()
        return cls.from_file(value)

    def __repr__(self):
        return f"TrustPolicy({self.name})"


class Copier(Protocol):
    """Copies one image between two transport references."""

    def copy(self, source: str, destination: str, policy: TrustPolicy) -> None:
        ...


class SkopeoCopier:
    """Registry copy capability backed by the skopeo executable."""

    def __init__(self, binary: str | None = None, timeout: int | None = None):
        self.binary = binary or config.SKOPEO_BIN
        timeout = config.TRANSFER_TIMEOUT if timeout is None else timeout
        self.timeout = timeout or None

    def copy(self, source: str, destination: str, policy: TrustPolicy) -> None:
        """
        Copy an image with ``skopeo copy``.

        Signatures are always removed, since bundle archives cannot carry
        them and relocated images are not re-signed.

        Raises:
            CopyError: if skopeo is missing, times out, or exits non-zero
        """
        with tempfile.NamedTemporaryFile("w", suffix=".json", prefix="policy-", delete=False) as f:
            json.dump(policy.document, f)
            policy_path = f.name

        try:
            cmd = [
                self.binary,
                "--policy",
                policy_path,
                "copy",
                "--remove-signatures",
                source,
                destination,
            ]
            self._run(cmd, source, destination)
        finally:
            os.unlink(policy_path)

    def _run(self, cmd: list[str], source: str, destination: str) -> None:
        logger.debug(f"Running command: {' '.join(cmd)}")

        # Stream output in debug mode, capture in normal mode
        is_debug = logger.getEffectiveLevel() == logging.DEBUG

        try:
            if is_debug:
                process = subprocess.Popen(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                    bufsize=1,
                )

                output_lines = []
                reader = threading.Thread(
                    target=_stream_output, args=(process.stdout, output_lines), daemon=True
                )
                reader.start()

                # The reader owns stdout so the wait below can time out
                try:
                    return_code = process.wait(timeout=self.timeout)
                except subprocess.TimeoutExpired:
                    process.kill()
                    process.wait()
                    raise
                finally:
                    reader.join()
                if return_code != 0:
                    detail = output_lines[-1] if output_lines else f"exit code {return_code}"
                    raise CopyError(source, destination, detail)
            else:
                subprocess.run(
                    cmd,
                    check=True,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    timeout=self.timeout,
                )

        except FileNotFoundError as e:
            raise CopyError(source, destination, f"{self.binary} not found") from e
        except subprocess.TimeoutExpired as e:
            raise CopyError(source, destination, f"timed out after {self.timeout}s") from e
        except subprocess.CalledProcessError as e:
            error_msg = (e.stderr or b"").decode(errors="replace").strip()
            detail = error_msg.splitlines()[-1] if error_msg else f"exit code {e.returncode}"
            raise CopyError(source, destination, detail) from e


def _stream_output(stream, output_lines: list[str]) -> None:
    for line in stream:
        line = line.rstrip()
        if line:
            logger.debug(f"[skopeo] {line}")
            output_lines.append(line)


class TransferEngine:
    """
    Saves images into bundle archives and pushes them to registries.

    Every transfer is a single attempt; failures raise TransferError naming
    the image and direction.
    """

    def __init__(self, copier: Copier | None = None, policy: TrustPolicy | None = None,
                 image_format: str | None = None):
        self.copier = copier or SkopeoCopier()
        self.policy = policy or TrustPolicy.from_setting(config.TRUST_POLICY)
        self.image_format = image_format or config.IMAGE_FORMAT

    def save(self, ref: ImageReference, dest_path: str) -> None:
        """
        Pull ``ref`` from its registry into an archive at ``dest_path``.

        The archive is written next to its final location and renamed into
        place once complete; a failed pull leaves nothing at ``dest_path``.

        Raises:
            TransferError: if the pull fails
        """
        image = str(ref)
        os.makedirs(os.path.dirname(dest_path), mode=0o755, exist_ok=True)

        partial = dest_path + PARTIAL_SUFFIX
        if os.path.exists(partial):
            os.remove(partial)

        logger.info(f"Pulling image {image}")
        try:
            self.copier.copy(
                f"{REGISTRY_TRANSPORT}{image}",
                f"{self.image_format}:{partial}",
                self.policy,
            )
        except CopyError as e:
            if os.path.exists(partial):
                os.remove(partial)
            logger.error(f"Pull failed for {image}: {e.detail}")
            raise TransferError(image, "pull", e.detail) from e

        os.replace(partial, dest_path)
        logger.debug(f"Saved {image} to {dest_path}")

    def push(self, src_path: str, dest_name: str, dest_tag: str | None,
             dest_digest: str | None = None) -> str:
        """
        Push a bundle archive to ``dest_name:dest_tag``.

        When ``dest_tag`` is empty the image is pushed by ``dest_digest``.

        Returns:
            The destination reference pushed to

        Raises:
            TransferError: if the push fails
        """
        if dest_tag:
            image = f"{dest_name}:{dest_tag}"
        elif dest_digest:
            image = f"{dest_name}@{dest_digest}"
        else:
            raise ValueError(f"push to {dest_name} needs a tag or a digest")

        logger.info(f"Pushing image {image}")
        try:
            self.copier.copy(
                f"{self.image_format}:{src_path}",
                f"{REGISTRY_TRANSPORT}{image}",
                self.policy,
            )
        except CopyError as e:
            logger.error(f"Push failed for {image}: {e.detail}")
            raise TransferError(image, "push", e.detail) from e

        return image
