import hashlib
import io
import json
import tarfile

import pytest

from relocator.archive import load_archive_manifest
from relocator.errors import ArchiveError


def _add(tar, name, data):
    info = tarfile.TarInfo(name)
    info.size = len(data)
    tar.addfile(info, io.BytesIO(data))


def _sha256(data):
    return "sha256:" + hashlib.sha256(data).hexdigest()


def _write_archive(path, layers, repo_tags=("registry.example.com/app:1.2.3",)):
    config = json.dumps({"architecture": "amd64", "os": "linux"}).encode()
    layer_names = [f"layer{i}.tar" for i in range(len(layers))]
    manifest = [{"Config": "config.json", "RepoTags": list(repo_tags), "Layers": layer_names}]

    with tarfile.open(path, "w") as tar:
        _add(tar, "manifest.json", json.dumps(manifest).encode())
        _add(tar, "config.json", config)
        for name, data in zip(layer_names, layers):
            _add(tar, name, data)
    return config


def test_load_archive_manifest(tmp_path):
    path = str(tmp_path / "1.2.3")
    layers = [b"first layer", b"second layer" * 100]
    config = _write_archive(path, layers)

    meta = load_archive_manifest(path)

    assert meta["config"] == {"name": "config.json", "digest": _sha256(config), "size": len(config)}
    assert [layer["digest"] for layer in meta["layers"]] == [_sha256(data) for data in layers]
    assert [layer["size"] for layer in meta["layers"]] == [len(data) for data in layers]
    assert meta["repo_tags"] == ["registry.example.com/app:1.2.3"]
    assert meta["total_size"] == len(config) + sum(len(data) for data in layers)


def test_load_archive_manifest_without_repo_tags(tmp_path):
    path = str(tmp_path / "sha256-archive")
    _write_archive(path, [b"layer"], repo_tags=())

    assert load_archive_manifest(path)["repo_tags"] == []


def test_archive_without_manifest(tmp_path):
    path = str(tmp_path / "1")
    with tarfile.open(path, "w") as tar:
        _add(tar, "layer.tar", b"data")

    with pytest.raises(ArchiveError, match="no manifest.json"):
        load_archive_manifest(path)


def test_archive_with_malformed_manifest(tmp_path):
    path = str(tmp_path / "2")
    with tarfile.open(path, "w") as tar:
        _add(tar, "manifest.json", b'{"Config": "config.json"}')

    with pytest.raises(ArchiveError, match="malformed manifest.json"):
        load_archive_manifest(path)


def test_archive_missing_layer(tmp_path):
    path = str(tmp_path / "3")
    manifest = [{"Config": "config.json", "Layers": ["missing.tar"]}]
    with tarfile.open(path, "w") as tar:
        _add(tar, "manifest.json", json.dumps(manifest).encode())
        _add(tar, "config.json", b"{}")

    with pytest.raises(ArchiveError, match="missing member: missing.tar"):
        load_archive_manifest(path)
