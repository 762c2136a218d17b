import pytest

from livecaption.overlap import (
    TokenData,
    find_start_of_overlap,
    reconstruct_sentence,
    to_timestamp,
)


def toks(*ids):
    return [TokenData(i) for i in ids]


def ids(tokens):
    return [t.id for t in tokens]


def test_overlap_found_at_tail():
    assert find_start_of_overlap(toks(1, 2, 3, 4), toks(3, 4, 5)) == (2, 0)


@pytest.mark.parametrize(
    "seq1,seq2",
    [
        ([], toks(1, 2)),
        (toks(1, 2), []),
        (toks(1), toks(1, 2)),
        (toks(1, 2), toks(2)),
    ],
)
def test_short_sequences_have_no_overlap(seq1, seq2):
    assert find_start_of_overlap(seq1, seq2) is None


def test_overlap_with_skip_in_first_sequence():
    result = find_start_of_overlap(toks(7, 8, 1, 9, 2), toks(1, 2, 3))
    assert result is not None
    i, j = result
    assert toks(7, 8, 1, 9, 2)[i].id == toks(1, 2, 3)[j].id


def test_reconstruct_merges_overlap():
    assert ids(reconstruct_sentence(toks(1, 2, 3, 4), toks(3, 4, 5))) == [1, 2, 3, 4, 5]


def test_reconstruct_empty_sides():
    assert reconstruct_sentence([], []) == []
    assert ids(reconstruct_sentence([], toks(4, 5))) == [4, 5]
    assert ids(reconstruct_sentence(toks(4, 5), [])) == [4, 5]


def test_reconstruct_plain_concatenation():
    assert ids(reconstruct_sentence(toks(1, 2), toks(3, 4))) == [1, 2, 3, 4]


def test_reconstruct_drops_repeated_junction_token():
    assert ids(reconstruct_sentence(toks(1, 2), toks(2, 3))) == [1, 2, 3]


def test_to_timestamp_zero():
    assert to_timestamp(0) == "00:00.000"


@pytest.mark.parametrize("ms", [1, 999, 1000, 59_999, 61_001, 3_723_456])
def test_to_timestamp_round_trip(ms):
    text = to_timestamp(ms)
    minutes, rest = text.split(":")
    seconds, millis = rest.split(".")
    assert len(millis) == 3
    assert int(minutes) * 60_000 + int(seconds) * 1000 + int(millis) == ms
    assert int(seconds) < 60