"""Build human-readable commit messages from pending changes."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from pathlib import PurePosixPath

from .classifier import ChangeClassifier, ChangeDescriptor, RawStatus

CLAUSE_SEPARATOR = " -- "

# Keys of metadata entries that change on every save without meaning anything
BOOKKEEPING_FIELDS = frozenset(
    {"updated", "updated_at", "updatedAt", "modified", "last_modified"}
)

_KEY_LINE_RE = re.compile(r'^\s*"((?:[^"\\]|\\.)*)"\s*:\s*(.*?)\s*$')
_ITEM_KEY_RE = re.compile(r"\.[A-Za-z][A-Za-z0-9]{1,4}$")


def _display_name(path: str) -> str:
    return PurePosixPath(path).name


def _parse_scalar(text: str) -> str:
    """Normalize a JSON scalar token (quotes removed for strings)."""
    text = text.strip().rstrip(",").strip()
    try:
        value = json.loads(text)
    except ValueError:
        return text
    return value if isinstance(value, str) else json.dumps(value)


def _unescape_key(raw: str) -> str:
    try:
        return json.loads(f'"{raw}"')
    except ValueError:
        return raw


class _DiffSide:
    """Reconstructs entry values for one side (old or new) of a metadata diff."""

    def __init__(self) -> None:
        self.items: dict[str, dict[str, object]] = {}
        self.changed_keys: set[str] = set()
        self._item: str | None = None
        self._nested: list[str] = []
        self._array: tuple[str, list[str]] | None = None

    def reset(self) -> None:
        """Forget position; a new hunk may start anywhere in the document."""
        self._finish_array()
        self._item = None
        self._nested = []

    def _finish_array(self) -> None:
        if self._array is not None and self._item is not None:
            path, values = self._array
            self.items[self._item][path] = tuple(values)
        self._array = None

    def _path(self, key: str) -> str:
        return ".".join([*self._nested, key])

    def feed(self, text: str, changed: bool) -> None:
        stripped = text.strip()

        if self._array is not None:
            if stripped.startswith("]"):
                self._finish_array()
            elif stripped:
                self._array[1].append(_parse_scalar(stripped))
            return

        match = _KEY_LINE_RE.match(text)
        if match:
            key = _unescape_key(match.group(1))
            value = match.group(2).rstrip(",").rstrip()
            self._feed_key(key, value, changed)
            return

        if stripped.startswith("}"):
            if self._nested:
                self._nested.pop()
            else:
                self._item = None

    def _feed_key(self, key: str, value: str, changed: bool) -> None:
        if value == "{":
            if not self._nested and _ITEM_KEY_RE.search(key):
                self._item = key
                self.items.setdefault(key, {})
                if changed:
                    self.changed_keys.add(key)
            elif self._item is not None:
                self._nested.append(key)
            return

        if self._item is None:
            return

        entry = self.items[self._item]
        if value == "[":
            self._array = (self._path(key), [])
        elif value.startswith("[") and value.endswith("]"):
            try:
                values = json.loads(value)
            except ValueError:
                entry[self._path(key)] = value
            else:
                entry[self._path(key)] = tuple(
                    v if isinstance(v, str) else json.dumps(v) for v in values
                )
        else:
            entry[self._path(key)] = _parse_scalar(value)


def format_item_changes(
    name: str,
    added_tags: list[str],
    removed_tags: list[str],
    properties: list[str],
) -> str | None:
    """Render all changes for one image as a single clause.

    Returns:
        e.g. ``sunset.jpg: added tags: beach, sky / updated matte``, or None
        when nothing changed.
    """
    parts = []
    if added_tags:
        label = "tags" if len(added_tags) > 1 else "tag"
        parts.append(f"added {label}: {', '.join(added_tags)}")
    if removed_tags:
        label = "tags" if len(removed_tags) > 1 else "tag"
        parts.append(f"removed {label}: {', '.join(removed_tags)}")
    if properties:
        parts.append(f"updated {', '.join(properties)}")

    if not parts:
        return None
    return f"{_display_name(name)}: {' / '.join(parts)}"


def parse_metadata_diff(diff: str) -> list[str]:
    """Summarize per-image changes in a unified diff of the metadata document.

    Values are compared, not lines: an entry only shown as context, a changed
    trailing comma, or a bookkeeping timestamp produce nothing. Entries whose
    key line was itself added or removed are new, deleted or renamed images,
    which the file-level clauses already describe.
    """
    old, new = _DiffSide(), _DiffSide()
    in_hunk = False

    for line in diff.splitlines():
        if line.startswith("diff --git"):
            in_hunk = False
            old.reset()
            new.reset()
            continue
        if line.startswith("@@"):
            in_hunk = True
            old.reset()
            new.reset()
            continue
        if not in_hunk or line.startswith("\\"):
            continue

        marker, text = line[:1], line[1:]
        if marker == "-":
            old.feed(text, changed=True)
        elif marker == "+":
            new.feed(text, changed=True)
        else:
            old.feed(text, changed=False)
            new.feed(text, changed=False)

    old.reset()
    new.reset()

    clauses = []
    skipped = old.changed_keys | new.changed_keys
    names = list(dict.fromkeys([*old.items, *new.items]))
    for name in names:
        if name in skipped or name not in old.items or name not in new.items:
            continue

        before, after = old.items[name], new.items[name]
        old_tags = list(before.get("tags", ()))
        new_tags = list(after.get("tags", ()))
        added_tags = [tag for tag in new_tags if tag not in old_tags]
        removed_tags = [tag for tag in old_tags if tag not in new_tags]

        properties: list[str] = []
        for path in dict.fromkeys([*before, *after]):
            top = path.split(".")[0]
            if top == "tags" or top in BOOKKEEPING_FIELDS or top in properties:
                continue
            if before.get(path) != after.get(path):
                properties.append(top)

        clause = format_item_changes(name, added_tags, removed_tags, properties)
        if clause:
            clauses.append(clause)

    return clauses


class CommitMessageComposer:
    """One-line commit summaries for a pending change set."""

    def __init__(self, classifier: ChangeClassifier | None = None):
        self.classifier = classifier or ChangeClassifier()

    def describe_file_changes(self, changes: Iterable[ChangeDescriptor]) -> list[str]:
        """File-level clauses for images: added, modified, renamed, deleted."""
        clauses = []
        for change in changes:
            in_content = self.classifier.is_content_path(change.path) or (
                change.from_path is not None
                and self.classifier.is_content_path(change.from_path)
            )
            if not in_content:
                continue

            name = _display_name(change.path)
            if change.status == RawStatus.RENAMED and change.from_path:
                clauses.append(f"renamed: {_display_name(change.from_path)} → {name}")
            elif change.status in (RawStatus.ADDED, RawStatus.UNTRACKED):
                clauses.append(f"added: {name}")
            elif change.status == RawStatus.DELETED:
                clauses.append(f"deleted: {name}")
            elif change.status == RawStatus.MODIFIED:
                clauses.append(f"modified: {name}")
        return clauses

    def parse_metadata_diff(self, diff: str) -> list[str]:
        return parse_metadata_diff(diff)

    def summarize(
        self,
        changes: Iterable[ChangeDescriptor],
        metadata_diff: str | None = None,
    ) -> list[str]:
        """All clauses: file operations first, then metadata edits."""
        clauses = self.describe_file_changes(changes)
        if metadata_diff:
            clauses += parse_metadata_diff(metadata_diff)
        return clauses

    def compose(
        self,
        changes: Iterable[ChangeDescriptor],
        metadata_diff: str | None = None,
    ) -> str:
        """Single-line commit message for the change set."""
        changes = list(changes)
        clauses = self.summarize(changes, metadata_diff)
        if not clauses:
            count = len(changes)
            return f"Sync: update {count} file{'s' if count != 1 else ''}"
        return CLAUSE_SEPARATOR.join(clauses)
