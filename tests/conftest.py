"""Shared fixtures: a source tree, archive helper, and a fake Docker client."""
import os
from pathlib import Path
import zipfile

import pytest
from docker.errors import DockerException

from compile_cache.models.build import BuildRequest
from compile_cache.tools.manifest_io import encode_manifest


@pytest.fixture(autouse=True)
def clean_settings_env(monkeypatch, tmp_path: Path) -> None:
    """Keep COMPILE_CACHE_* variables and stray .env files out of every test."""
    for name in list(os.environ):
        if name.startswith("COMPILE_CACHE_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def input_dir(tmp_path: Path) -> Path:
    src = tmp_path / "input"
    src.mkdir()
    (src / "script.sh").write_text("#!/bin/sh\ncd /input && zip -r /output/out.zip .\n")
    return src


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "output"


@pytest.fixture
def request_for(input_dir: Path, output_dir: Path) -> BuildRequest:
    return BuildRequest(
        filename="out.zip",
        input_dir=input_dir,
        output_dir=output_dir,
        image="alpine:3.19",
        script="script.sh",
    )


def write_archive(archive_path: Path, fingerprints=None, listing_name: str = "listing", extra=None) -> Path:
    """Write a zip with an optional listing entry and extra members."""
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(archive_path, "w") as zf:
        if fingerprints is not None:
            zf.writestr(listing_name, encode_manifest(fingerprints, listing_name))
        for name, data in (extra or {}).items():
            zf.writestr(name, data)
    return archive_path


def zip_directory(src: Path, archive_path: Path) -> None:
    """What a typical build script does: zip the whole input tree, listing included."""
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(archive_path, "w") as zf:
        for path in sorted(src.rglob("*")):
            if path.is_file():
                zf.write(path, path.relative_to(src).as_posix())


class FakeContainer:
    def __init__(self, client, container_id: str, image: str, command, mounts):
        self.client = client
        self.id = container_id
        self.image = image
        self.command = command
        self.mounts = mounts
        self.started = False
        self.removed = False
        self.wait_timeout = "unset"

    def _maybe_fail(self, stage: str) -> None:
        if self.client.fail_on == stage:
            raise DockerException(f"{stage} failed")

    def start(self):
        self._maybe_fail("start")
        self.started = True
        if self.client.on_start is not None:
            self.client.on_start(self)

    def wait(self, timeout=None):
        self.wait_timeout = timeout
        self._maybe_fail("wait")
        return {"StatusCode": self.client.exit_code, "Error": None}

    def logs(self, stdout=True, stderr=True):
        self._maybe_fail("logs")
        self.client.log_calls.append({"stdout": stdout, "stderr": stderr})
        return self.client.log_output

    def remove(self, force=False):
        self._maybe_fail("remove")
        self.removed = True


class FakeImages:
    def __init__(self, client):
        self.client = client

    def pull(self, repository, tag=None, **kwargs):
        if self.client.fail_on == "pull":
            raise DockerException("pull failed")
        self.client.pulled.append(repository)
        return repository


class FakeContainers:
    def __init__(self, client):
        self.client = client

    def create(self, image, command=None, **kwargs):
        if self.client.fail_on == "create":
            raise DockerException("create failed")
        container = FakeContainer(
            self.client, f"c{len(self.client.created) + 1:011d}", image, command, kwargs.get("mounts")
        )
        self.client.created.append(container)
        return container


class FakeDockerClient:
    """Records every container lifecycle call; fail_on names a stage to fail."""

    def __init__(self, exit_code: int = 0, log_output: bytes = b"build ok\n", fail_on=None, on_start=None):
        self.exit_code = exit_code
        self.log_output = log_output
        self.fail_on = fail_on
        self.on_start = on_start
        self.pulled = []
        self.created = []
        self.log_calls = []
        self.images = FakeImages(self)
        self.containers = FakeContainers(self)


@pytest.fixture
def fake_client() -> FakeDockerClient:
    return FakeDockerClient()
