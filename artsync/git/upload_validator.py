"""Reject incomplete image uploads before they are committed."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from .classifier import ChangeClassifier, ChangeDescriptor

if TYPE_CHECKING:
    from .repo_manager import GitRepoManager

logger = logging.getLogger(__name__)

LFS_POINTER_SIGNATURE = b"version https://git-lfs.github.com/spec/v1"

EMPTY_FILE_REASON = "File is empty after upload."
LFS_POINTER_REASON = "File appears to be a Git LFS pointer and was not hydrated."


@dataclass
class ValidationError:
    """A rejected upload."""

    file: str
    reason: str

    def to_dict(self) -> dict:
        return {"file": self.file, "reason": self.reason}


@dataclass
class ValidationReport:
    """Outcome of validating one batch of new images."""

    checked: list[str] = field(default_factory=list)
    errors: list[ValidationError] = field(default_factory=list)
    cleaned_up: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        return "; ".join(f"{e.file}: {e.reason}" for e in self.errors)


class UploadValidator:
    """Checks newly added images and rolls back the broken ones.

    A rejected image is removed together with its thumbnail and its metadata
    entry so no partial entry is left behind.
    """

    def __init__(
        self,
        repo_path: Path,
        classifier: ChangeClassifier | None = None,
        thumbs_dir: str = "thumbs",
        thumbnail_prefix: str = "thumb_",
        metadata_file: str = "metadata.json",
        repo_manager: GitRepoManager | None = None,
    ):
        self.repo_path = Path(repo_path)
        self.classifier = classifier or ChangeClassifier(
            thumbs_dir=thumbs_dir, metadata_file=metadata_file
        )
        self.thumbs_dir = thumbs_dir
        self.thumbnail_prefix = thumbnail_prefix
        self.metadata_file = metadata_file
        self._repo_manager = repo_manager

    def check_file(self, path: Path) -> str | None:
        """Reason the file is invalid, or None if it looks like a real image."""
        if path.stat().st_size == 0:
            return EMPTY_FILE_REASON
        with open(path, "rb") as f:
            head = f.read(len(LFS_POINTER_SIGNATURE))
        if head == LFS_POINTER_SIGNATURE:
            return LFS_POINTER_REASON
        return None

    def validate(self, changes: Iterable[ChangeDescriptor]) -> ValidationReport:
        """Validate new images in the batch without touching the working set."""
        report = ValidationReport()
        for relative in self.classifier.new_content_paths(changes):
            path = self.repo_path / relative
            if not path.is_file():
                continue
            report.checked.append(relative)
            reason = self.check_file(path)
            if reason:
                logger.warning(f"Rejecting upload {relative}: {reason}")
                report.errors.append(ValidationError(file=relative, reason=reason))
        return report

    def validate_and_rollback(
        self, changes: Iterable[ChangeDescriptor]
    ) -> ValidationReport:
        """Validate, then remove every rejected image and its companions."""
        report = self.validate(changes)
        if not report.is_valid:
            report.cleaned_up = self.rollback([e.file for e in report.errors])
        return report

    def rollback(self, paths: list[str]) -> list[str]:
        """Remove images, thumbnails and metadata entries.

        Returns:
            Names of the images that were cleaned up.
        """
        names = [PurePosixPath(p).name for p in paths]
        thumbs = [
            f"{self.thumbs_dir}/{self.thumbnail_prefix}{name}" for name in names
        ]

        if self._repo_manager is not None:
            self._repo_manager.unstage([*paths, *thumbs])

        for relative in [*paths, *thumbs]:
            (self.repo_path / relative).unlink(missing_ok=True)

        self._remove_metadata_entries(names)
        logger.info(f"Rolled back invalid uploads: {', '.join(names)}")
        return names

    def _remove_metadata_entries(self, names: list[str]) -> None:
        metadata_path = self.repo_path / self.metadata_file
        if not metadata_path.exists():
            return

        with open(metadata_path, encoding="utf-8") as f:
            metadata = json.load(f)

        images = metadata.get("images", {})
        removed = [name for name in names if images.pop(name, None) is not None]
        if not removed:
            return

        with open(metadata_path, "w", encoding="utf-8") as f:
            json.dump(metadata, f, indent=2, ensure_ascii=False)
            f.write("\n")
