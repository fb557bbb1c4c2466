import threading

import pytest

from resort_pos.errors import InvalidArgument, SequenceUnavailable, StoreError
from resort_pos.persistence import SqliteStore
from resort_pos.sequencer import BillSequencer, format_bill_no, parse_bill_no


class StubCounter:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []
        self.values = {}

    def allocate_bill_number(self, prefix):
        self.calls.append(prefix)
        if self.fail:
            raise StoreError("connection refused")
        self.values[prefix] = self.values.get(prefix, 0) + 1
        return self.values[prefix]


class TestBillNumberFormat:
    def test_format(self):
        assert format_bill_no("B", 42) == "B-42"

    def test_parse(self):
        assert parse_bill_no("R-7") == ("R", 7)

    @pytest.mark.parametrize("raw", ["R7", "-7", "R-", "R-x"])
    def test_parse_rejects_garbage(self, raw):
        with pytest.raises(InvalidArgument):
            parse_bill_no(raw)


class TestBillSequencer:
    def test_prefixes_count_independently(self):
        seq = BillSequencer(StubCounter())
        assert seq.next_bill_number("B") == "B-1"
        assert seq.next_bill_number("B") == "B-2"
        assert seq.next_bill_number("R") == "R-1"

    def test_store_failure_becomes_sequence_unavailable(self):
        seq = BillSequencer(StubCounter(fail=True))
        with pytest.raises(SequenceUnavailable, match="B"):
            seq.next_bill_number("B")

    def test_sequence_unavailable_is_retryable_store_error(self):
        assert issubclass(SequenceUnavailable, StoreError)

    @pytest.mark.parametrize("prefix", ["", "B-2"])
    def test_invalid_prefix(self, prefix):
        counter = StubCounter()
        with pytest.raises(InvalidArgument):
            BillSequencer(counter).next_bill_number(prefix)
        assert counter.calls == []

    def test_unreachable_database(self, tmp_path):
        # A directory cannot be opened as a database file.
        bad = tmp_path / "db-dir"
        bad.mkdir()
        with pytest.raises(SequenceUnavailable):
            BillSequencer(SqliteStore(bad)).next_bill_number("B")


class TestSqliteAllocation:
    def test_strictly_increasing(self, store):
        seq = BillSequencer(store)
        assert [seq.next_bill_number("B") for _ in range(3)] == ["B-1", "B-2", "B-3"]
        assert store.get_bill_sequence("B").last_issued == 3
        assert store.get_bill_sequence("R") is None

    def test_two_concurrent_allocations_are_consecutive(self, store):
        barrier = threading.Barrier(2)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            value = store.allocate_bill_number("B")
            with lock:
                results.append(value)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == [1, 2]

    def test_many_concurrent_allocations_never_collide(self, tmp_path):
        db = tmp_path / "shared.db"
        SqliteStore(db).bootstrap_schema()
        results = []
        errors = []
        lock = threading.Lock()

        def device():
            # Each device gets its own store handle on the shared file.
            local = SqliteStore(db, timeout=30)
            try:
                for _ in range(5):
                    value = local.allocate_bill_number("B")
                    with lock:
                        results.append(value)
            except StoreError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=device) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(results) == list(range(1, 41))
