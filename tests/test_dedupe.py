from __future__ import annotations

import unittest

from webmention_cache.dedupe import (
    parse_epoch,
    remove_duplicates,
    sort_by_published,
    sort_by_received,
)


class TestRemoveDuplicates(unittest.TestCase):
    def test_keeps_first_per_source_in_order(self) -> None:
        items = [
            {"wm-source": "https://a.example", "n": 1},
            {"wm-source": "https://b.example", "n": 2},
            {"source": "https://a.example", "n": 3},
            {"url": "https://c.example", "n": 4},
            {"wm-source": "https://b.example", "n": 5},
        ]
        out = remove_duplicates(items)
        self.assertEqual([i["n"] for i in out], [1, 2, 4])

    def test_output_never_longer_than_input(self) -> None:
        items = [{"source": f"https://s{i % 3}.example"} for i in range(10)]
        out = remove_duplicates(items)
        self.assertLessEqual(len(out), len(items))
        self.assertEqual(len({i["source"] for i in out}), len(out))

    def test_missing_records_kept_once(self) -> None:
        items = [None, {"source": "https://a.example"}, None]
        out = remove_duplicates(items)
        self.assertEqual(out, [None, {"source": "https://a.example"}])

    def test_sourceless_records_distinct_from_missing(self) -> None:
        items = [None, {"target": "t1"}, {"target": "t2"}]
        out = remove_duplicates(items)
        self.assertEqual(out, [None, {"target": "t1"}])


class TestSorting(unittest.TestCase):
    def test_parse_epoch(self) -> None:
        self.assertEqual(parse_epoch("1970-01-01T00:00:10Z"), 10.0)
        self.assertEqual(parse_epoch("1970-01-01T00:00:10"), 10.0)
        self.assertEqual(parse_epoch(20), 20.0)
        self.assertEqual(parse_epoch(20_000_000_000_000), 20_000_000_000.0)
        self.assertEqual(parse_epoch("not a date"), 0.0)
        self.assertEqual(parse_epoch(None), 0.0)
        self.assertEqual(parse_epoch(""), 0.0)

    def test_sort_by_received_newest_first(self) -> None:
        items = [
            {"wm-received": "2024-01-01T00:00:00Z", "n": 1},
            {"wm-received": "2024-03-01T00:00:00Z", "n": 2},
            {"wm-received": "garbage", "n": 3},
            {"wm-received": "2024-02-01T00:00:00Z", "n": 4},
        ]
        self.assertEqual([i["n"] for i in sort_by_received(items)], [2, 4, 1, 3])

    def test_sort_by_published_oldest_first_and_stable(self) -> None:
        items = [
            {"published": "2024-02-01T00:00:00Z", "n": 1},
            {"published": "2024-01-01T00:00:00Z", "n": 2},
            {"published": "2024-01-01T00:00:00Z", "n": 3},
            {"n": 4},
        ]
        self.assertEqual([i["n"] for i in sort_by_published(items)], [4, 2, 3, 1])

    def test_sort_tolerates_missing_records(self) -> None:
        out = sort_by_received([None, {"wm-received": "2024-01-01T00:00:00Z"}])
        self.assertEqual(out[1], None)


if __name__ == "__main__":
    unittest.main()
