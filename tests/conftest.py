import os

import pytest

from relocator.errors import CopyError
from relocator.transfer import TransferEngine, TrustPolicy

ARCHIVE_TRANSPORT = "docker-archive:"


class FakeCopier:
    """Records copies; pulls write a placeholder archive at the destination."""

    def __init__(self):
        self.calls = []
        self.fail_on = set()

    def copy(self, source, destination, policy):
        self.calls.append((source, destination, policy))
        if source in self.fail_on or destination in self.fail_on:
            raise CopyError(source, destination, "simulated registry failure")
        if destination.startswith(ARCHIVE_TRANSPORT):
            with open(destination[len(ARCHIVE_TRANSPORT):], "w") as f:
                f.write(source)

    @property
    def pulls(self):
        return [source for source, destination, _ in self.calls if destination.startswith(ARCHIVE_TRANSPORT)]

    @property
    def pushes(self):
        return [destination for source, destination, _ in self.calls if source.startswith(ARCHIVE_TRANSPORT)]


@pytest.fixture
def fake_copier():
    return FakeCopier()


@pytest.fixture
def engine(fake_copier):
    return TransferEngine(copier=fake_copier, policy=TrustPolicy.accept_any(), image_format="docker-archive")


def deployment(*images, kind="Deployment", name="app"):
    containers = "".join(f"        - name: c{i}\n          image: {image}\n" for i, image in enumerate(images))
    return (
        "apiVersion: apps/v1\n"
        f"kind: {kind}\n"
        "metadata:\n"
        f"  name: {name}\n"
        "spec:\n"
        "  template:\n"
        "    spec:\n"
        "      containers:\n"
        f"{containers}"
    )


@pytest.fixture
def write_file(tmp_path):
    def _write(relpath, contents, root="manifests"):
        path = tmp_path / root / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(contents, bytes):
            path.write_bytes(contents)
        else:
            path.write_text(contents)
        return str(path)

    return _write


@pytest.fixture
def manifest_dir(tmp_path):
    path = tmp_path / "manifests"
    path.mkdir(exist_ok=True)
    return str(path)


@pytest.fixture
def bundle_dir(tmp_path):
    return str(tmp_path / "bundle")


def touch(path):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as f:
        f.write("archive")
