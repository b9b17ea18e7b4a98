import io
import os

import pytest
import yaml

from conftest import deployment, touch
from relocator.errors import TransferError
from relocator.images import save_images
from relocator.reference import ImageReference, parse_reference
from relocator.relocate import RelocationPair, RelocationResult, dump_mapping, relocate

DIGEST = "sha256:" + "e" * 64


def test_save_then_relocate_end_to_end(write_file, manifest_dir, bundle_dir, engine, fake_copier):
    write_file("app.yaml", deployment("registry.example.com/app:1.2.3"))

    save_images(manifest_dir, bundle_dir, engine=engine)
    archive = os.path.join(bundle_dir, "docker-archive", "app", "1.2.3")
    assert os.path.isfile(archive)

    result = relocate(bundle_dir, "myregistry.io", "myns", engine=engine)

    assert fake_copier.pushes == ["docker://myregistry.io/myns/app:1.2.3"]
    assert fake_copier.calls[-1][0] == f"docker-archive:{archive}"
    assert len(result) == 1
    pair = result.pairs[0]
    assert pair.original == ImageReference(name="app", tag="1.2.3")
    assert str(pair.rewritten) == "myregistry.io/myns/app:1.2.3"


def test_relocate_digest_entry(bundle_dir, engine, fake_copier):
    touch(os.path.join(bundle_dir, "docker-archive", "team", "db", *DIGEST.split(":")))

    result = relocate(bundle_dir, "myregistry.io", "myns", engine=engine)

    assert fake_copier.pushes == [f"docker://myregistry.io/myns/db@{DIGEST}"]
    assert result.pairs[0].rewritten.digest == DIGEST


def test_relocate_keeps_commit_sha_tag(write_file, manifest_dir, bundle_dir, engine, fake_copier):
    sha = "0123456789abcdef0123456789abcdef01234567"
    write_file("app.yaml", deployment(f"quay.io/myorg/app:{sha}"))

    save_images(manifest_dir, bundle_dir, engine=engine)
    result = relocate(bundle_dir, "myregistry.io", "myns", engine=engine)

    assert fake_copier.pushes == [f"docker://myregistry.io/myns/app:{sha}"]
    assert result.pairs[0].original == ImageReference(name="myorg/app", tag=sha)


def test_relocate_without_registry_domain(bundle_dir, engine, fake_copier):
    touch(os.path.join(bundle_dir, "docker-archive", "app", "1"))

    relocate(bundle_dir, "", "myns", engine=engine)

    assert fake_copier.pushes == ["docker://myns/app:1"]


def test_relocate_processes_every_format(bundle_dir, engine, fake_copier):
    touch(os.path.join(bundle_dir, "docker-archive", "a", "1"))
    touch(os.path.join(bundle_dir, "docker-archive", "b", "1"))
    touch(os.path.join(bundle_dir, "oci-archive", "c", "1"))

    result = relocate(bundle_dir, "myregistry.io", "myns", engine=engine)

    assert [str(pair.rewritten) for pair in result] == [
        "myregistry.io/myns/a:1",
        "myregistry.io/myns/b:1",
        "myregistry.io/myns/c:1",
    ]


def test_push_failure_on_second_entry_is_fail_fast(bundle_dir, engine, fake_copier):
    for name in ("a", "b", "c"):
        touch(os.path.join(bundle_dir, "docker-archive", name, "1"))
    fake_copier.fail_on.add("docker://myregistry.io/myns/b:1")

    with pytest.raises(TransferError) as excinfo:
        relocate(bundle_dir, "myregistry.io", "myns", engine=engine)

    assert excinfo.value.image == "myregistry.io/myns/b:1"
    assert excinfo.value.direction == "push"
    assert fake_copier.pushes == ["docker://myregistry.io/myns/a:1", "docker://myregistry.io/myns/b:1"]


def test_empty_bundle(bundle_dir, engine):
    os.makedirs(bundle_dir)

    assert len(relocate(bundle_dir, "myregistry.io", "myns", engine=engine)) == 0


def test_kustomize_mapping():
    result = RelocationResult([
        RelocationPair(
            original=parse_reference("app:1.2.3"),
            rewritten=parse_reference("myregistry.io/myns/app:1.2.3"),
        ),
        RelocationPair(
            original=ImageReference(name="team/db", digest=DIGEST),
            rewritten=ImageReference(name="myns/db", domain="myregistry.io", digest=DIGEST),
        ),
    ])

    stream = io.StringIO()
    dump_mapping(result, stream)

    assert yaml.safe_load(stream.getvalue()) == {
        "images": [
            {"name": "app", "newName": "myregistry.io/myns/app", "newTag": "1.2.3"},
            {"name": "team/db", "newName": "myregistry.io/myns/db", "digest": DIGEST},
        ]
    }
