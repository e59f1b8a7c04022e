"""
Test chunked transactional writes.
"""

import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError

from lta_bus.ingest.batch_writer import chunked, write_batches, delete_all
from lta_bus.ingest.normalizer import RouteRow, ScheduleRow, normalize_payload
from lta_bus.ingest.schema import Stop, Route, ScheduleEntry


def _counts(session):
    return (
        session.query(Stop).count(),
        session.query(Route).count(),
        session.query(ScheduleEntry).count(),
    )


def _snapshot(session):
    return (
        [s.to_dict() for s in session.query(Stop).order_by(Stop.identifier)],
        [r.to_dict() for r in session.query(Route).order_by(Route.route_identifier)],
        [e.to_dict() for e in session.query(ScheduleEntry).order_by(
            ScheduleEntry.route_identifier, ScheduleEntry.day_class)],
    )


class _TableOrder:
    """Record the target table of each INSERT or DELETE, collapsing repeats."""

    def __init__(self, engine, verb):
        self.engine = engine
        self.verb = verb
        self.tables = []

    def __enter__(self):
        event.listen(self.engine, "before_cursor_execute", self.record)
        return self.tables

    def __exit__(self, *exc):
        event.remove(self.engine, "before_cursor_execute", self.record)

    def record(self, conn, cursor, statement, parameters, context, executemany):
        words = statement.split()
        if words[0].upper() != self.verb:
            return
        table = words[2]
        if not self.tables or self.tables[-1] != table:
            self.tables.append(table)


class TestChunked:

    def test_splits_with_remainder(self):
        assert list(chunked(list(range(5)), 2)) == [[0, 1], [2, 3], [4]]

    def test_empty(self):
        assert list(chunked([], 500)) == []

    def test_rejects_zero(self):
        with pytest.raises(ValueError):
            list(chunked([1], 0))


class TestWriteBatches:

    def test_writes_all_tables(self, session, sample_payload):
        batches = normalize_payload(sample_payload)

        written = write_batches(session, batches)

        assert written == 3
        assert _counts(session) == (3, 3, 4)

    def test_worked_example(self, session, single_stop_payload):
        write_batches(session, normalize_payload(single_stop_payload))

        entry = session.query(ScheduleEntry).one()
        assert entry.to_dict() == {
            'route_identifier': '1000-12', 'day_class': 'wd',
            'first_bus': '0500', 'last_bus': '2300',
        }
        assert session.get(Route, '1000-12').stop_identifier == 1000

    @pytest.mark.parametrize("chunk_size", [1, 2, 500])
    def test_chunk_size_does_not_change_result(self, engine, session_factory, sample_payload, chunk_size):
        session = session_factory()
        write_batches(session, normalize_payload(sample_payload), chunk_size=chunk_size)
        snapshot = _snapshot(session)
        session.close()

        assert snapshot[0][0]['identifier'] == 1012
        assert len(snapshot[1]) == 3
        assert len(snapshot[2]) == 4

    def test_one_statement_per_chunk(self, engine, session, sample_payload):
        statements = []

        @event.listens_for(engine, "before_cursor_execute")
        def record(conn, cursor, statement, parameters, context, executemany):
            if statement.lstrip().upper().startswith("INSERT"):
                statements.append(statement)

        try:
            write_batches(session, normalize_payload(sample_payload), chunk_size=2)
        finally:
            event.remove(engine, "before_cursor_execute", record)

        # 3 stops, 3 routes, 4 schedule entries in chunks of 2
        assert len(statements) == 2 + 2 + 2

    def test_invalid_chunk_size(self, session, sample_payload):
        with pytest.raises(ValueError):
            write_batches(session, normalize_payload(sample_payload), chunk_size=0)

    def test_failure_rolls_back_everything(self, session_factory, sample_payload):
        batches = normalize_payload(sample_payload)
        # Duplicate (route, day) violates the schedule primary key after
        # stops and routes have already been inserted
        batches.schedules.append(ScheduleRow("01012-12", "wd", "0501", "2301"))

        session = session_factory()
        with pytest.raises(IntegrityError):
            write_batches(session, batches)
        session.close()

        check = session_factory()
        assert _counts(check) == (0, 0, 0)
        check.close()

    def test_parents_written_before_children(self, engine, session, sample_payload):
        with _TableOrder(engine, "INSERT") as tables:
            write_batches(session, normalize_payload(sample_payload), chunk_size=2)

        assert tables == ["bus_stops", "bus_routes", "schedule_entries"]

    def test_route_for_missing_stop_is_rejected(self, session_factory, sample_payload):
        batches = normalize_payload(sample_payload)
        batches.routes.append(RouteRow("99999-7", 99999, "7", "SBST", 1))

        session = session_factory()
        with pytest.raises(IntegrityError):
            write_batches(session, batches)
        session.close()

        check = session_factory()
        assert _counts(check) == (0, 0, 0)
        check.close()


class TestDeleteAll:

    def test_removes_every_row(self, session, sample_payload):
        write_batches(session, normalize_payload(sample_payload))

        delete_all(session)

        assert _counts(session) == (0, 0, 0)

    def test_empty_store(self, session):
        delete_all(session)
        assert _counts(session) == (0, 0, 0)

    def test_children_deleted_before_parents(self, engine, session, sample_payload):
        write_batches(session, normalize_payload(sample_payload))

        with _TableOrder(engine, "DELETE") as tables:
            delete_all(session)

        assert tables == ["schedule_entries", "bus_routes", "bus_stops"]

    def test_stops_cannot_be_deleted_while_routes_reference_them(self, session, sample_payload):
        write_batches(session, normalize_payload(sample_payload))

        with pytest.raises(IntegrityError):
            session.query(Stop).delete(synchronize_session=False)
        session.rollback()

        assert _counts(session) == (3, 3, 4)
