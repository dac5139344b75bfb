"""Shared fixtures: real git repositories backed by a local bare remote."""

from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path

import pytest

from artsync.config import ArtSyncConfig
from artsync.git import SyncLog, SyncManager

requires_git = pytest.mark.skipif(
    shutil.which("git") is None, reason="git executable not available"
)

# Minimal valid JPEG header; content only has to be non-empty and not an LFS pointer
IMAGE_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"


def git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), *args],
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


def configure_identity(repo: Path, name: str) -> None:
    git(repo, "config", "user.name", name)
    git(repo, "config", "user.email", f"{name}@example.com")
    git(repo, "config", "commit.gpgsign", "false")


def write_metadata(repo: Path, images: dict, tags: list[str] | None = None) -> None:
    document = {"version": "1.0", "images": images, "tags": tags or []}
    path = repo / "metadata.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2)
        f.write("\n")


def read_metadata(repo: Path) -> dict:
    with open(repo / "metadata.json", encoding="utf-8") as f:
        return json.load(f)


def image_entry(tags: list[str] | None = None, matte: str = "none") -> dict:
    return {
        "matte": matte,
        "filter": "none",
        "tags": tags or [],
        "dimensions": {"width": 3840, "height": 2160},
        "updated": "2024-01-01T00:00:00Z",
    }


def add_image(repo: Path, name: str, data: bytes = IMAGE_BYTES, tags=None) -> None:
    """Write an image, its thumbnail and its metadata entry."""
    (repo / "library").mkdir(exist_ok=True)
    (repo / "thumbs").mkdir(exist_ok=True)
    (repo / "library" / name).write_bytes(data)
    (repo / "thumbs" / f"thumb_{name}").write_bytes(IMAGE_BYTES)
    if (repo / "metadata.json").exists():
        metadata = read_metadata(repo)
    else:
        metadata = {"images": {}, "tags": []}
    metadata["images"][name] = image_entry(tags)
    write_metadata(repo, metadata["images"], metadata["tags"])


def make_remote(root: Path, name: str = "remote.git", with_metadata: bool = True) -> Path:
    """Bare remote seeded with one commit holding an empty library."""
    bare = root / name
    subprocess.run(
        ["git", "init", "--bare", "-b", "main", str(bare)],
        capture_output=True,
        check=True,
    )

    seed = root / f"{name}-seed"
    subprocess.run(
        ["git", "clone", str(bare), str(seed)], capture_output=True, check=True
    )
    configure_identity(seed, "seed")
    git(seed, "checkout", "-B", "main")
    (seed / "library").mkdir()
    (seed / "library" / ".gitkeep").write_text("")
    (seed / "thumbs").mkdir()
    (seed / "thumbs" / ".gitkeep").write_text("")
    if with_metadata:
        write_metadata(seed, {})
    git(seed, "add", "-A")
    git(seed, "commit", "-m", "Initial library")
    git(seed, "push", "origin", "main")
    return bare


def clone(remote: Path, path: Path) -> Path:
    subprocess.run(
        ["git", "clone", str(remote), str(path)], capture_output=True, check=True
    )
    configure_identity(path, path.name)
    return path


def make_config(repo: Path, log_path: Path, **sync) -> ArtSyncConfig:
    config = ArtSyncConfig()
    config.repo.path = str(repo)
    config.repo.require_lfs = False
    config.sync.log_path = str(log_path)
    config.sync.retry_base_delay = 0.0
    for key, value in sync.items():
        setattr(config.sync, key, value)
    return config


@pytest.fixture
def remote(tmp_path):
    return make_remote(tmp_path)


@pytest.fixture
def clone_factory(tmp_path, remote):
    """Create clones of the remote, one per location."""

    def _clone(name: str) -> Path:
        return clone(remote, tmp_path / name)

    return _clone


@pytest.fixture
def manager_factory(tmp_path):
    """Build a SyncManager for a clone, with a per-clone sync log."""

    def _manager(repo: Path, **sync) -> SyncManager:
        log_path = tmp_path / "logs" / f"{repo.name}.json"
        return SyncManager(make_config(repo, log_path, **sync))

    return _manager


@pytest.fixture
def sync_log(tmp_path):
    return SyncLog(tmp_path / "sync_logs.json")
