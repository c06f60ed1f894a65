"""
Unit tests for the Batcher.

Includes property-based testing with hypothesis for grouping properties.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from sale_actions.processing.batcher import Batcher
from sale_actions.utils.validation import ValidationError

pytestmark = pytest.mark.unit


class TestBatcher:
    """Tests for Batcher"""

    def test_full_groups_then_partial(self):
        """Test that the trailing partial group is flushed"""
        assert list(Batcher(2).batches([1, 2, 3, 4, 5])) == [[1, 2], [3, 4], [5]]

    def test_empty_input_flushes_nothing(self):
        """Test that an empty stream never produces an empty group"""
        assert list(Batcher(3).batches([])) == []

    def test_exact_multiple(self):
        """Test that no extra group follows an exact multiple"""
        assert list(Batcher(2).batches("abcd")) == [["a", "b"], ["c", "d"]]

    def test_groups_are_flushed_lazily(self):
        """Test that a full group is yielded before the input is exhausted"""
        consumed = []

        def source():
            for i in range(5):
                consumed.append(i)
                yield i

        batches = Batcher(2).batches(source())
        assert next(batches) == [0, 1]
        assert consumed == [0, 1]

    @pytest.mark.parametrize("batch_size", [0, -1, 1001, "10", True])
    def test_invalid_batch_size(self, batch_size):
        """Test that the batch size is validated"""
        with pytest.raises(ValidationError):
            Batcher(batch_size)

    @given(st.lists(st.integers()), st.integers(min_value=1, max_value=20))
    def test_grouping_preserves_order_and_bounds(self, items, batch_size):
        """Property: groups are non-empty, bounded and concatenate to the input"""
        groups = list(Batcher(batch_size).batches(items))

        assert all(1 <= len(group) <= batch_size for group in groups)
        assert all(len(group) == batch_size for group in groups[:-1])
        assert [item for group in groups for item in group] == items
