"""Unit tests for LabelIndex."""

import pytest
from pydantic import ValidationError

from client_side_training.data.labels import LabelIndex
from client_side_training.errors import IndexOutOfRange, UnknownLabel


class TestLabelIndexBuild:
    def test_sorted_lexicographically(self) -> None:
        idx = LabelIndex.build({"dogs", "cats", "birds"})
        assert idx.labels == ("birds", "cats", "dogs")
        assert idx.class_to_idx == {"birds": 0, "cats": 1, "dogs": 2}

    def test_deterministic_and_idempotent(self) -> None:
        labels = ["b", "a", "c", "a"]
        first = LabelIndex.build(labels)
        second = LabelIndex.build(reversed(labels))
        assert first == second
        assert LabelIndex.build(first.labels) == first

    def test_empty_string_sorts_first(self) -> None:
        idx = LabelIndex.build({"1", "", "10", "2"})
        assert idx.labels == ("", "1", "10", "2")
        assert idx.index_of("") == 0

    def test_cats_and_dogs_mapping(self) -> None:
        idx = LabelIndex.build({"dogs", "cats"})
        assert idx.class_to_idx == {"cats": 0, "dogs": 1}
        assert idx.idx_to_class == {0: "cats", 1: "dogs"}

    def test_container_protocol(self) -> None:
        idx = LabelIndex.build({"x", "y"})
        assert len(idx) == 2
        assert list(idx) == ["x", "y"]
        assert "x" in idx
        assert "z" not in idx


class TestLabelIndexLookup:
    def test_index_of_unknown_raises(self) -> None:
        idx = LabelIndex.build({"cats"})
        with pytest.raises(UnknownLabel):
            idx.index_of("dogs")

    @pytest.mark.parametrize("bad", [-1, 2, 100])
    def test_label_of_out_of_range_raises(self, bad: int) -> None:
        idx = LabelIndex.build({"cats", "dogs"})
        with pytest.raises(IndexOutOfRange):
            idx.label_of(bad)

    def test_round_trip(self) -> None:
        idx = LabelIndex.build({"a", "b", "c"})
        for label in idx:
            assert idx.label_of(idx.index_of(label)) == label

    def test_index_of_large_index(self) -> None:
        labels = [f"class_{i:04d}" for i in range(2000)]
        idx = LabelIndex.build(labels)
        assert [idx.index_of(label) for label in labels] == list(range(2000))

    def test_mapping_copy_does_not_leak(self) -> None:
        idx = LabelIndex.build({"cats", "dogs"})
        mapping = idx.class_to_idx
        mapping["cats"] = 7
        mapping["birds"] = 2
        assert idx.index_of("cats") == 0
        with pytest.raises(UnknownLabel):
            idx.index_of("birds")

    def test_copies_keep_lookups(self) -> None:
        idx = LabelIndex.build({"cats", "dogs"})
        copy = idx.model_copy()
        assert copy == idx
        assert copy.index_of("dogs") == 1


class TestLabelIndexImmutability:
    def test_frozen(self) -> None:
        idx = LabelIndex.build({"a"})
        with pytest.raises(ValidationError):
            idx.labels = ("b",)  # type: ignore[misc]

    def test_unsorted_labels_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LabelIndex(labels=("b", "a"))

    def test_duplicate_labels_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LabelIndex(labels=("a", "a"))
