"""Tests for activity filtering, ordering and transaction derivation."""

import itertools

import pytest

from ballot_explorer.views import (
    ActivityFilter,
    activity_counts,
    derive_transactions,
    filter_records,
    parse_voting_id,
    select_activity,
    sort_records,
)

from conftest import ALICE, BOB, created, tx, vote


@pytest.fixture
def records():
    return [
        created(0, 10, tx(1), title="Student Council"),
        vote(0, 12, tx(2), option=1),
        vote(0, 12, tx(3), option=0),
        created(1, 15, tx(4), title="Library Hours"),
        vote(1, 20, tx(5), option=2),
        vote(12, 21, tx(6), option=0),
    ]


class TestSort:

    def test_descending_by_block(self, records):
        assert [r.block_number for r in sort_records(records)] == [21, 20, 15, 12, 12, 10]

    def test_ascending_by_block(self, records):
        assert [r.block_number for r in sort_records(records, descending=False)] == [10, 12, 12, 15, 20, 21]

    def test_ties_by_ascending_hash_any_input_order(self):
        a, b, c = vote(0, 7, tx(3)), vote(0, 7, tx(1)), vote(0, 7, tx(2))
        for perm in itertools.permutations([a, b, c]):
            for descending in (True, False):
                assert [r.tx_hash for r in sort_records(perm, descending)] == [tx(1), tx(2), tx(3)]

    def test_sort_is_idempotent(self, records):
        once = sort_records(records)
        assert sort_records(once) == once

    def test_input_not_mutated(self, records):
        before = list(records)
        sort_records(records)
        assert records == before


class TestFilter:

    def test_no_filter_keeps_everything(self, records):
        assert filter_records(records, ActivityFilter()) == records

    def test_kind(self, records):
        out = filter_records(records, ActivityFilter(kind="VotingCreated"))
        assert {r.kind for r in out} == {"VotingCreated"}
        assert len(out) == 2

    def test_voting_id_exact(self, records):
        out = filter_records(records, ActivityFilter(voting_id=" 1 "))
        assert [r.tx_hash for r in out] == [tx(4), tx(5)]

    def test_voting_id_is_not_a_substring_match(self, records):
        out = filter_records(records, ActivityFilter(voting_id="1"))
        assert all(r.voting_id == 1 for r in out)

    @pytest.mark.parametrize("text", ["abc", "-1", "1.5", "1e2", "0x1"])
    def test_non_numeric_voting_id_yields_nothing(self, records, text):
        assert filter_records(records, ActivityFilter(voting_id=text)) == []

    def test_blank_voting_id_is_ignored(self, records):
        assert filter_records(records, ActivityFilter(voting_id="   ")) == records

    def test_text_case_insensitive_title(self, records):
        out = filter_records(records, ActivityFilter(text="  LIBRARY "))
        assert [r.tx_hash for r in out] == [tx(4)]

    def test_text_matches_addresses(self, records):
        assert len(filter_records(records, ActivityFilter(text=BOB.upper()[2:]))) == 4
        assert len(filter_records(records, ActivityFilter(text=ALICE[-6:]))) == 2

    def test_text_matches_block_and_hash(self, records):
        assert [r.tx_hash for r in filter_records(records, ActivityFilter(text="21"))] == [tx(6)]
        assert [r.tx_hash for r in filter_records(records, ActivityFilter(text=tx(5)))] == [tx(5)]

    def test_composition_equals_joint_filter(self, records):
        for kind, q in itertools.product(["all", "VotingCreated", "VoteCast"], ["", "1", "council", "zzz", "0x"]):
            by_kind = filter_records(records, ActivityFilter(kind=kind))
            by_text = filter_records(records, ActivityFilter(text=q))
            joint = filter_records(records, ActivityFilter(kind=kind, text=q))
            assert joint == [r for r in by_kind if r in by_text]

    def test_select_filters_then_sorts(self, records):
        out = select_activity(records, ActivityFilter(kind="VoteCast"), descending=False)
        assert [r.block_number for r in out] == [12, 12, 20, 21]


class TestParseVotingId:

    def test_accepts_digits(self):
        assert parse_voting_id("042") == 42

    def test_rejects_other(self):
        assert parse_voting_id("") is None
        assert parse_voting_id("4 2") is None


class TestDeriveTransactions:

    def test_empty(self):
        assert derive_transactions([]) == []

    def test_one_row_per_hash(self, records):
        rows = derive_transactions(records)
        assert len(rows) == len({r.tx_hash for r in records})
        assert [r.block_number for r in rows] == [21, 20, 15, 12, 12, 10]

    def test_created_wins_over_vote(self):
        shared = tx(77)
        for pair in ([vote(3, 9, shared), created(3, 9, shared)], [created(3, 9, shared), vote(3, 9, shared)]):
            rows = derive_transactions(pair)
            assert len(rows) == 1
            assert rows[0].record.kind == "VotingCreated"
            assert rows[0].record.title == "Budget"

    def test_first_vote_kept_among_votes(self):
        shared = tx(8)
        rows = derive_transactions([vote(1, 4, shared, option=2), vote(1, 4, shared, option=0)])
        assert rows[0].record.option_index == 2

    def test_carries_timestamp(self):
        rows = derive_transactions([vote(1, 4, tx(1), timestamp=1234)])
        assert rows[0].timestamp == 1234


def test_activity_counts(records):
    assert activity_counts(records) == {"events": 6, "created": 2, "votes": 4, "unique_txs": 6}
