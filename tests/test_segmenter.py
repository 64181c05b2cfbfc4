from __future__ import annotations

import random

import pytest

from passage.segmenter import BatchBuilder, Segmenter, split_text
from passage.structures import InputItem


def test_short_text_is_returned_unchanged() -> None:
    assert split_text("abc", 3) == ["abc"]
    assert split_text("", 5) == [""]


def test_cuts_after_sentence_end_keeping_the_space() -> None:
    assert split_text("Hello world. Bye now", 14) == ["Hello world. ", "Bye now"]


def test_rightmost_boundary_wins_over_earlier_sentence_end() -> None:
    # ". " sits at index 3 but the space at index 8 is further right.
    assert split_text("One. two three", 10) == ["One. two ", "three"]


def test_newline_is_kept_with_the_first_piece() -> None:
    assert split_text("line one\nline two", 12) == ["line one\n", "line two"]


def test_hard_cuts_when_window_has_no_boundary() -> None:
    pieces = split_text("x" * 25, 10)
    assert pieces == ["x" * 10, "x" * 10, "x" * 5]


def test_single_character_budget_still_makes_progress() -> None:
    assert split_text("a b", 1) == ["a", " ", "b"]


def test_leading_and_trailing_whitespace_survive() -> None:
    text = "   indented start. middle\n\n  end with spaces   "
    pieces = split_text(text, 6)
    assert "".join(pieces) == text
    assert all(len(piece) <= 6 for piece in pieces)


def test_rejects_non_positive_budget() -> None:
    with pytest.raises(ValueError):
        split_text("abc", 0)


@pytest.mark.parametrize("max_len", [1, 2, 3, 7, 16, 64])
def test_random_texts_round_trip_within_budget(max_len: int) -> None:
    rng = random.Random(max_len)
    charset = "abcde .?!\n\téü—你好"
    for _ in range(50):
        text = "".join(rng.choice(charset) for _ in range(rng.randint(0, 300)))
        pieces = split_text(text, max_len)
        assert "".join(pieces) == text
        if len(text) > max_len:
            assert all(0 < len(piece) <= max_len for piece in pieces)


def test_segmenter_tags_pieces_and_skips_empty_texts() -> None:
    items = Segmenter(5).segment(["", "ab cd ef", None, "xyz"])

    assert items == [
        InputItem(origin_index=1, text="ab "),
        InputItem(origin_index=1, text="cd ef"),
        InputItem(origin_index=3, text="xyz"),
    ]


def test_segmenter_clamps_budget() -> None:
    assert Segmenter(0).budget == 1


def _items(*lengths: int) -> list[InputItem]:
    return [InputItem(origin_index=index, text="a" * size) for index, size in enumerate(lengths)]


def test_batches_fill_up_to_the_budget() -> None:
    batches = BatchBuilder(50).build(_items(10, 20, 20, 5))

    assert [[len(item.text) for item in batch.items] for batch in batches] == [[10, 20, 20], [5]]
    assert [batch.batch_id for batch in batches] == [1, 2]
    assert batches[0].char_count == 50


def test_large_items_get_their_own_batches() -> None:
    batches = BatchBuilder(50000).build(_items(35000, 30000, 45000))

    assert [batch.char_count for batch in batches] == [35000, 30000, 45000]


def test_oversized_item_is_kept_whole_as_a_singleton() -> None:
    batches = BatchBuilder(50).build(_items(10, 60, 10))

    assert [batch.char_count for batch in batches] == [10, 60, 10]


def test_batching_keeps_order_and_is_deterministic() -> None:
    items = Segmenter(8).segment(["The cat sat. On the mat.", "hi", "", "A long tail of words"])
    builder = BatchBuilder(12)

    first = builder.build(items)
    second = builder.build(items)

    assert first == second
    assert [item for batch in first for item in batch.items] == items
    assert all(batch.char_count <= 12 for batch in first)


def test_no_items_means_no_batches() -> None:
    assert BatchBuilder(10).build([]) == []
