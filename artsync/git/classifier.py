"""Classify raw git file changes into image-level changes."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum


class RawStatus(Enum):
    """File status as reported by git."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    UNTRACKED = "untracked"
    CONFLICTED = "conflicted"

    @classmethod
    def from_code(cls, code: str) -> "RawStatus | None":
        """Parse a git status letter (``M``, ``A``, ``R100``, ``??``...)."""
        code = code.strip()
        if not code:
            return None
        if code.startswith("??") or code == "?":
            return cls.UNTRACKED
        letter = code[0]
        if letter == "A":
            return cls.ADDED
        elif letter in ("M", "T"):
            return cls.MODIFIED
        elif letter == "D":
            return cls.DELETED
        elif letter in ("R", "C"):
            return cls.RENAMED
        elif letter == "U":
            return cls.CONFLICTED
        return None


@dataclass(frozen=True)
class ChangeDescriptor:
    """One changed path."""

    path: str
    status: RawStatus
    from_path: str | None = None


@dataclass
class ChangeBucket:
    """Image-level change counts for one direction (upload or download)."""

    new: int = 0
    modified: int = 0
    deleted: int = 0
    renamed: int = 0

    @property
    def count(self) -> int:
        return self.new + self.modified + self.deleted + self.renamed

    def __add__(self, other: "ChangeBucket") -> "ChangeBucket":
        return ChangeBucket(
            new=self.new + other.new,
            modified=self.modified + other.modified,
            deleted=self.deleted + other.deleted,
            renamed=self.renamed + other.renamed,
        )

    def to_dict(self) -> dict:
        """Status shape; renames are reported as modifications of existing images."""
        modified = self.modified + self.renamed
        return {
            "count": self.new + modified + self.deleted,
            "newImages": self.new,
            "modifiedImages": modified,
            "deletedImages": self.deleted,
            "renamedImages": self.renamed,
        }


class ChangeClassifier:
    """Turn raw file statuses into image-level change counts.

    Only files under the content directory and the metadata document count.
    Thumbnails are derived from images and never counted on their own.
    """

    def __init__(
        self,
        content_dir: str = "library",
        thumbs_dir: str = "thumbs",
        metadata_file: str = "metadata.json",
    ):
        self.content_prefix = content_dir.rstrip("/") + "/"
        self.thumbs_prefix = thumbs_dir.rstrip("/") + "/"
        self.metadata_file = metadata_file

    def is_content_path(self, path: str) -> bool:
        return path.startswith(self.content_prefix) and not path.startswith(
            self.thumbs_prefix
        )

    def is_thumbnail_path(self, path: str) -> bool:
        return path.startswith(self.thumbs_prefix)

    def new_content_paths(self, changes: Iterable[ChangeDescriptor]) -> list[str]:
        """Content paths that are newly added (staged or untracked)."""
        return [
            change.path
            for change in changes
            if change.status in (RawStatus.ADDED, RawStatus.UNTRACKED)
            and self.is_content_path(change.path)
        ]

    def classify(
        self,
        changes: Iterable[ChangeDescriptor],
        new_paths: Iterable[str] | None = None,
    ) -> ChangeBucket:
        """Count new, modified, deleted and renamed images.

        Args:
            changes: Raw change descriptors
            new_paths: Paths already known to be new images (used when the
                descriptors come from a commit range rather than the work tree)

        Returns:
            ChangeBucket for the given changes.
        """
        known_new = set(new_paths or [])
        bucket = ChangeBucket()

        for change in changes:
            if change.path == self.metadata_file:
                # Added/deleted metadata means bootstrap or loss, not an image change
                if change.status == RawStatus.MODIFIED:
                    bucket.modified += 1
                continue

            if not self.is_content_path(change.path):
                continue

            if change.status == RawStatus.RENAMED:
                bucket.renamed += 1
            elif (
                change.status in (RawStatus.ADDED, RawStatus.UNTRACKED)
                or change.path in known_new
            ):
                bucket.new += 1
            elif change.status == RawStatus.DELETED:
                bucket.deleted += 1
            elif change.status == RawStatus.MODIFIED:
                bucket.modified += 1

        return bucket
