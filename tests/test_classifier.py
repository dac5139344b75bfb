"""Tests for the change classifier."""

import pytest

from artsync.git import ChangeBucket, ChangeClassifier, ChangeDescriptor, RawStatus


def change(path, status, from_path=None):
    return ChangeDescriptor(path=path, status=status, from_path=from_path)


@pytest.fixture
def classifier():
    return ChangeClassifier()


def assert_identity(bucket: ChangeBucket):
    data = bucket.to_dict()
    assert data["count"] == data["newImages"] + data["modifiedImages"] + data["deletedImages"]


class TestChangeClassifier:
    """Raw statuses become image-level counts."""

    def test_new_image(self, classifier):
        bucket = classifier.classify([change("library/a.jpg", RawStatus.UNTRACKED)])
        assert bucket.new == 1
        assert bucket.count == 1
        assert_identity(bucket)

    def test_staged_add_is_new(self, classifier):
        bucket = classifier.classify([change("library/a.jpg", RawStatus.ADDED)])
        assert bucket.new == 1

    def test_known_new_path_overrides_status(self, classifier):
        """Paths reported as modified in a commit range can be new images."""
        bucket = classifier.classify(
            [change("library/a.jpg", RawStatus.MODIFIED)], new_paths=["library/a.jpg"]
        )
        assert bucket.new == 1
        assert bucket.modified == 0

    def test_modified_and_deleted(self, classifier):
        bucket = classifier.classify(
            [
                change("library/a.jpg", RawStatus.MODIFIED),
                change("library/b.jpg", RawStatus.DELETED),
            ]
        )
        assert bucket.modified == 1
        assert bucket.deleted == 1
        assert bucket.count == 2
        assert_identity(bucket)

    def test_rename_counts_once(self, classifier):
        bucket = classifier.classify(
            [change("library/b.jpg", RawStatus.RENAMED, from_path="library/a.jpg")]
        )
        assert bucket.renamed == 1
        assert bucket.new == 0
        assert bucket.deleted == 0
        assert bucket.count == 1
        assert bucket.to_dict()["modifiedImages"] == 1
        assert_identity(bucket)

    def test_metadata_modified_counts_as_one(self, classifier):
        bucket = classifier.classify([change("metadata.json", RawStatus.MODIFIED)])
        assert bucket.modified == 1

    @pytest.mark.parametrize("status", [RawStatus.ADDED, RawStatus.DELETED, RawStatus.UNTRACKED])
    def test_metadata_added_or_deleted_not_counted(self, classifier, status):
        bucket = classifier.classify([change("metadata.json", status)])
        assert bucket.count == 0

    def test_paths_outside_content_ignored(self, classifier):
        bucket = classifier.classify(
            [
                change("README.md", RawStatus.MODIFIED),
                change(".gitattributes", RawStatus.ADDED),
                change("libraryx/a.jpg", RawStatus.ADDED),
            ]
        )
        assert bucket.count == 0

    def test_conflicted_ignored(self, classifier):
        bucket = classifier.classify([change("library/a.jpg", RawStatus.CONFLICTED)])
        assert bucket.count == 0

    def test_thumbnails_do_not_affect_totals(self, classifier):
        base = [
            change("library/a.jpg", RawStatus.UNTRACKED),
            change("library/b.jpg", RawStatus.MODIFIED),
            change("metadata.json", RawStatus.MODIFIED),
        ]
        thumbs = [
            change("thumbs/thumb_a.jpg", RawStatus.UNTRACKED),
            change("thumbs/thumb_b.jpg", RawStatus.MODIFIED),
            change("thumbs/thumb_c.jpg", RawStatus.DELETED),
            change("thumbs/thumb_d.jpg", RawStatus.RENAMED, from_path="thumbs/thumb_e.jpg"),
        ]

        without = classifier.classify(base)
        for n in range(len(thumbs) + 1):
            bucket = classifier.classify(base + thumbs[:n])
            assert bucket == without
            assert_identity(bucket)

    def test_total_never_exceeds_raw_count(self, classifier):
        changes = [
            change("library/a.jpg", RawStatus.UNTRACKED),
            change("library/c.jpg", RawStatus.RENAMED, from_path="library/b.jpg"),
            change("thumbs/thumb_a.jpg", RawStatus.UNTRACKED),
            change("metadata.json", RawStatus.MODIFIED),
        ]
        assert classifier.classify(changes).count <= len(changes)

    def test_custom_layout(self):
        classifier = ChangeClassifier(
            content_dir="art", thumbs_dir="art/thumbs", metadata_file="art/index.json"
        )
        bucket = classifier.classify(
            [
                change("art/a.png", RawStatus.UNTRACKED),
                change("art/thumbs/thumb_a.png", RawStatus.UNTRACKED),
                change("art/index.json", RawStatus.MODIFIED),
            ]
        )
        assert bucket.new == 1
        assert bucket.modified == 1
        assert bucket.count == 2

    def test_new_content_paths(self, classifier):
        changes = [
            change("library/a.jpg", RawStatus.UNTRACKED),
            change("library/b.jpg", RawStatus.ADDED),
            change("library/c.jpg", RawStatus.MODIFIED),
            change("thumbs/thumb_a.jpg", RawStatus.UNTRACKED),
        ]
        assert classifier.new_content_paths(changes) == ["library/a.jpg", "library/b.jpg"]


class TestChangeBucket:
    def test_add(self):
        total = ChangeBucket(new=1, deleted=1) + ChangeBucket(modified=2, renamed=1)
        assert total == ChangeBucket(new=1, modified=2, deleted=1, renamed=1)
        assert total.count == 5

    def test_to_dict_shape(self):
        data = ChangeBucket(new=2, modified=1, deleted=1, renamed=1).to_dict()
        assert data == {
            "count": 5,
            "newImages": 2,
            "modifiedImages": 2,
            "deletedImages": 1,
            "renamedImages": 1,
        }


class TestRawStatus:
    @pytest.mark.parametrize(
        "code,expected",
        [
            ("A", RawStatus.ADDED),
            ("M", RawStatus.MODIFIED),
            ("T", RawStatus.MODIFIED),
            ("D", RawStatus.DELETED),
            ("R100", RawStatus.RENAMED),
            ("R087", RawStatus.RENAMED),
            ("C050", RawStatus.RENAMED),
            ("??", RawStatus.UNTRACKED),
            ("U", RawStatus.CONFLICTED),
        ],
    )
    def test_from_code(self, code, expected):
        assert RawStatus.from_code(code) is expected

    def test_unknown_code(self):
        assert RawStatus.from_code("X") is None
        assert RawStatus.from_code("") is None
