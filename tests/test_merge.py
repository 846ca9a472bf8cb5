"""Tests for merge-by-identity."""

from tubefeed.feed.merge import merge_by_identity

from conftest import at, make_video


def key(v):
    return v.video_id


def test_appends_unseen_items():
    existing = [make_video("a", at(3)), make_video("b", at(2))]
    incoming = [make_video("c", at(1))]

    merged, added = merge_by_identity(existing, incoming, key=key)

    assert [v.video_id for v in merged] == ["a", "b", "c"]
    assert added == 1


def test_first_occurrence_wins():
    original = make_video("a", at(3))
    changed = original.model_copy(update={"title": "Edited"})

    merged, added = merge_by_identity([original], [changed], key=key)

    assert added == 0
    assert merged[0].title == original.title


def test_duplicates_within_incoming():
    incoming = [make_video("a", at(2)), make_video("a", at(2)), make_video("b", at(1))]

    merged, added = merge_by_identity([], incoming, key=key)

    assert [v.video_id for v in merged] == ["a", "b"]
    assert added == 2


def test_existing_list_is_not_mutated():
    existing = [make_video("a", at(1))]

    merge_by_identity(existing, [make_video("b", at(0))], key=key)

    assert len(existing) == 1


def test_works_with_plain_values():
    merged, added = merge_by_identity([1, 2], [2, 3, 3], key=lambda x: x)
    assert merged == [1, 2, 3]
    assert added == 1
