from __future__ import annotations

from listing_crawler.engine import Deduplicator, Record, dedupe


def _records(*pairs: tuple[str, str]) -> list[Record]:
    return [Record({"text": text, "author": author}) for text, author in pairs]


def test_dedupe_keeps_first_occurrence_in_order() -> None:
    records = _records(("a", "1"), ("b", "2"), ("a", "3"), ("c", "4"), ("b", "5"))
    result = dedupe(records, "text")

    assert [(r["text"], r["author"]) for r in result] == [("a", "1"), ("b", "2"), ("c", "4")]


def test_dedupe_is_idempotent() -> None:
    records = _records(("a", "1"), ("a", "2"), ("b", "3"))
    once = dedupe(records, "text")

    assert dedupe(once, "text") == once


def test_records_without_key_are_kept() -> None:
    records = [Record({"author": "x"}), Record({"author": "y"}), *_records(("a", "1"))]
    deduplicator = Deduplicator("text")

    assert len(deduplicator.filter(records)) == 3
    assert deduplicator.duplicates == 0


def test_deduplicator_counts_duplicates() -> None:
    deduplicator = Deduplicator("text")
    assert deduplicator.admit(Record({"text": "a"}))
    assert not deduplicator.admit(Record({"text": "a"}))
    assert deduplicator.admit(Record({"text": "b"}))
    assert deduplicator.duplicates == 1


def test_multi_value_identity_is_compared_as_tuple() -> None:
    records = [Record({"tags": ["x", "y"]}), Record({"tags": ("x", "y")}), Record({"tags": ["y", "x"]})]

    assert len(dedupe(records, "tags")) == 2
