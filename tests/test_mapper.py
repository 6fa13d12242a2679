"""Tests for Mapper reads and writes against sqlite3 (``?N`` placeholders)."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

import pytest
from conftest import RecordingConnection

from sorm.config import MapperConfig
from sorm.dialect import OracleDialect
from sorm.errors import (
    ConfigError,
    ExecutionError,
    InputShapeError,
    MissingIdentityError,
    NoRowsError,
)
from sorm.mapper import Mapper, is_zero, transaction
from sorm.protocols import Cursor, Querier, TransactionalQuerier
from sorm.tags import column, embedded, exclude


@dataclass
class Object:
    id: int = 0
    name: str = ""


@dataclass
class Membership:
    group_id: int = column(id=True, default=0)
    user_id: int = column(id=True, default=0)
    role: str = ""
    joined: str = column(readonly=True, default="")


@dataclass
class Address:
    street: str = ""
    city: str = ""


@dataclass
class Person:
    id: int = 0
    name: str = column("full_name", table="people", default="")
    email: str = ""
    created_at: str = column(readonly=True, default="")
    secret: str = exclude(default="")
    address: Address = embedded(Address)


@dataclass
class Note:
    text: str = ""


def rows(db: sqlite3.Connection, sql: str) -> list[tuple]:
    return db.execute(sql).fetchall()


class TestIsZero:
    @pytest.mark.parametrize(
        "value",
        [None, 0, 0.0, "", b"", [], (), {}, False, Decimal(0), Decimal("-0.00"), UUID(int=0)],
    )
    def test_zero_values(self, value) -> None:
        assert is_zero(value)

    @pytest.mark.parametrize(
        "value",
        [1, -1, "0", [0], object(), Decimal("1.5"), UUID(int=1), datetime(2020, 1, 1)],
    )
    def test_non_zero_values(self, value) -> None:
        assert not is_zero(value)

    def test_value_equal_to_default_instance(self) -> None:
        assert is_zero(Address())
        assert not is_zero(Address("Main", "Oslo"))


class TestProtocols:
    def test_sqlite3_connection_and_cursor(self, db) -> None:
        assert isinstance(db, Querier)
        assert isinstance(db, TransactionalQuerier)
        assert isinstance(db.execute("select 1"), Cursor)

    def test_recording_wrapper(self, conn: RecordingConnection) -> None:
        assert isinstance(conn, TransactionalQuerier)


class TestReads:
    def test_find_where(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        db.executemany("insert into objects (id, name) values (?, ?)", [(1, "a"), (2, "b")])

        found = mapper.find_where(conn, Object, "where id = ?1", 2)

        assert found == [Object(id=2, name="b")]
        assert conn.statements == [("select * from objects where id = ?1", (2,))]

    def test_find_all(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        db.executemany("insert into objects (id, name) values (?, ?)", [(1, "a"), (2, "b")])

        assert [o.id for o in mapper.find_all(conn, Object)] == [1, 2]
        assert conn.queries == ["select * from objects"]

    def test_find_accepts_instance(self, mapper: Mapper, conn: RecordingConnection) -> None:
        assert mapper.find_all(conn, Object()) == []

    def test_find_first(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        db.executemany("insert into objects (id, name) values (?, ?)", [(1, "a"), (2, "b")])

        assert mapper.find_first(conn, Object) == Object(id=1, name="a")
        assert conn.queries == ["select * from objects limit 1"]

    def test_find_first_where(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        db.execute("insert into objects (id, name) values (7, 'x')")

        assert mapper.find_first_where(conn, Object, "where name = ?1", "x").id == 7
        assert conn.queries == ["select * from objects where name = ?1 limit 1"]

    def test_find_first_no_rows(self, mapper: Mapper, conn: RecordingConnection) -> None:
        with pytest.raises(NoRowsError) as exc_info:
            mapper.find_first_where(conn, Object, "where id = ?1", 1)
        assert exc_info.value.operation == "find_first_where"

    def test_count(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        db.executemany("insert into objects (id, name) values (?, ?)", [(1, "a"), (2, "b")])

        assert mapper.count_all(conn, Object) == 2
        assert mapper.count_where(conn, Object, "where name = ?1", "b") == 1
        assert conn.queries == [
            "select count(*) from objects",
            "select count(*) from objects where name = ?1",
        ]

    def test_embedded_and_renamed_columns(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        db.execute(
            "insert into people (id, full_name, email, created_at, street, city) "
            "values (1, 'Ada', 'ada@example.com', '2020-01-01', 'Main', 'Oslo')"
        )

        person = mapper.find_first(conn, Person)

        assert person.name == "Ada"
        assert person.address == Address(street="Main", city="Oslo")
        assert person.secret == ""

    def test_rejects_non_record(self, mapper: Mapper, conn: RecordingConnection) -> None:
        with pytest.raises(InputShapeError):
            mapper.find_all(conn, 42)
        assert conn.statements == []

    def test_driver_error_carries_query(self, mapper: Mapper, conn: RecordingConnection) -> None:
        @dataclass
        class Missing:
            id: int = 0

        with pytest.raises(ExecutionError) as exc_info:
            mapper.find_all(conn, Missing)
        err = exc_info.value
        assert err.context.query == "select * from missings"
        assert isinstance(err.__cause__, sqlite3.OperationalError)


class TestCreate:
    def test_zero_id_is_generated(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        obj = Object(name="a")

        mapper.create_record(conn, obj)

        assert obj.id == 1
        assert conn.statements == [
            ("insert into objects (name) values (?1)", ("a",)),
            ("select last_insert_rowid()", ()),
        ]
        assert rows(db, "select id, name from objects") == [(1, "a")]

    def test_decimal_zero_id_is_generated(
        self, mapper: Mapper, conn: RecordingConnection, db
    ) -> None:
        @dataclass
        class Ledger:
            id: Decimal = column(table="objects", default=Decimal(0))
            name: str = ""

        entry = Ledger(name="a")

        mapper.create_record(conn, entry)

        assert conn.statements == [
            ("insert into objects (name) values (?1)", ("a",)),
            ("select last_insert_rowid()", ()),
        ]
        assert entry.id == 1

    def test_explicit_id_is_inserted(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        obj = Object(id=5, name="b")

        mapper.create_record(conn, obj)

        assert conn.statements == [
            ("insert into objects (id, name) values (?1, ?2)", (5, "b")),
        ]
        assert obj.id == 5

    def test_composite_identity_never_fetched(
        self, mapper: Mapper, conn: RecordingConnection, db
    ) -> None:
        m = Membership(group_id=1, user_id=2, role="admin", joined="2020")

        mapper.create_record(conn, m)

        assert conn.statements == [
            (
                "insert into memberships (group_id, user_id, role, joined) values (?1, ?2, ?3, ?4)",
                (1, 2, "admin", "2020"),
            ),
        ]

    def test_embedded_fields_and_exclusions(
        self, mapper: Mapper, conn: RecordingConnection, db
    ) -> None:
        p = Person(name="Ada", email="a@x", secret="s", address=Address("Main", "Oslo"))

        mapper.create_record(conn, p)

        assert conn.statements[0] == (
            "insert into people (full_name, email, created_at, street, city) "
            "values (?1, ?2, ?3, ?4, ?5)",
            ("Ada", "a@x", "", "Main", "Oslo"),
        )
        assert p.id == 1

    def test_only_generated_id(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        @dataclass
        class Blank:
            id: int = column(table="objects", default=0)

        b = Blank()
        mapper.create_record(conn, b)

        assert conn.queries[0] == "insert into objects default values"
        assert b.id == 1

    def test_dialect_without_identity_query(self, conn: RecordingConnection) -> None:
        mapper = Mapper(MapperConfig(parameter_prefix="?", dialect=OracleDialect()))

        with pytest.raises(ConfigError):
            mapper.create_record(conn, Object(name="a"))
        assert conn.statements == []

    def test_requires_identity(self, mapper: Mapper, conn: RecordingConnection) -> None:
        with pytest.raises(MissingIdentityError, match="couldn't determine id field"):
            mapper.create_record(conn, Note(text="x"))
        assert conn.statements == []

    def test_requires_instance(self, mapper: Mapper, conn: RecordingConnection) -> None:
        with pytest.raises(InputShapeError):
            mapper.create_record(conn, Object)


class TestSave:
    def test_updates_only_changed_fields(
        self, mapper: Mapper, conn: RecordingConnection, db
    ) -> None:
        db.execute("insert into objects (id, name) values (1, 'a')")

        assert mapper.save_record(conn, Object(id=1, name="b")) is True

        assert conn.statements == [
            ("select * from objects where id = ?1 limit 1", (1,)),
            ("update objects set name = ?2 where id = ?1", (1, "b")),
        ]
        assert rows(db, "select name from objects") == [("b",)]

    def test_unchanged_record_issues_no_update(
        self, mapper: Mapper, conn: RecordingConnection, db
    ) -> None:
        db.execute("insert into objects (id, name) values (1, 'a')")

        assert mapper.save_record(conn, Object(id=1, name="a")) is False
        assert conn.queries == ["select * from objects where id = ?1 limit 1"]

    def test_composite_identity_numbering(
        self, mapper: Mapper, conn: RecordingConnection, db
    ) -> None:
        db.execute("insert into memberships values (1, 2, 'member', '2020')")
        m = Membership(group_id=1, user_id=2, role="admin", joined="2099")

        assert mapper.save_record(conn, m)

        assert conn.statements[-1] == (
            "update memberships set role = ?3 where group_id = ?1 and user_id = ?2",
            (1, 2, "admin"),
        )
        assert rows(db, "select role, joined from memberships") == [("admin", "2020")]

    def test_embedded_change_readonly_and_excluded_skipped(
        self, mapper: Mapper, conn: RecordingConnection, db
    ) -> None:
        db.execute(
            "insert into people (id, full_name, email, created_at, street, city) "
            "values (1, 'Ada', 'a@x', '2020', 'Main', 'Oslo')"
        )
        p = Person(
            id=1,
            name="Ada",
            email="a@x",
            created_at="2099",
            secret="changed",
            address=Address("Main", "Bergen"),
        )

        assert mapper.save_record(conn, p)
        assert conn.statements[-1] == (
            "update people set city = ?2 where id = ?1",
            (1, "Bergen"),
        )

    def test_missing_row(self, mapper: Mapper, conn: RecordingConnection) -> None:
        with pytest.raises(NoRowsError, match="couldn't find record"):
            mapper.save_record(conn, Object(id=9, name="x"))

    def test_requires_identity(self, mapper: Mapper, conn: RecordingConnection) -> None:
        with pytest.raises(MissingIdentityError):
            mapper.save_record(conn, Note())

    def test_with_transaction_commits(
        self, mapper: Mapper, conn: RecordingConnection, db
    ) -> None:
        db.execute("insert into objects (id, name) values (1, 'a')")
        db.commit()

        assert mapper.save_record_with_transaction(conn, Object(id=1, name="b"))
        assert conn.commits == 1
        assert conn.rollbacks == 0

    def test_with_transaction_rolls_back_on_failure(
        self, mapper: Mapper, conn: RecordingConnection
    ) -> None:
        with pytest.raises(NoRowsError):
            mapper.save_record_with_transaction(conn, Object(id=1, name="b"))
        assert conn.commits == 0
        assert conn.rollbacks == 1

    def test_with_transaction_commit_failure(
        self, mapper: Mapper, conn: RecordingConnection, db
    ) -> None:
        db.execute("insert into objects (id, name) values (1, 'a')")
        db.commit()
        conn.fail_commit = True

        with pytest.raises(ExecutionError, match="couldn't commit transaction"):
            mapper.save_record_with_transaction(conn, Object(id=1, name="b"))
        assert conn.rollbacks == 1
        assert rows(db, "select name from objects") == [("a",)]


class TestReplace:
    def test_insert_then_replace(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        mapper.replace_record(conn, Object(id=1, name="a"))
        mapper.replace_record(conn, Object(id=1, name="b"))

        assert conn.statements[-1] == (
            "insert or replace into objects (id, name) values (?1, ?2)",
            (1, "b"),
        )
        assert rows(db, "select id, name from objects") == [(1, "b")]

    def test_requires_identity(self, mapper: Mapper, conn: RecordingConnection) -> None:
        with pytest.raises(MissingIdentityError):
            mapper.replace_record(conn, Note())


class TestDelete:
    def test_single_identity(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        db.executemany("insert into objects (id, name) values (?, ?)", [(1, "a"), (2, "b")])

        mapper.delete_record(conn, Object(id=1))

        assert conn.statements == [("delete from objects where id = ?1", (1,))]
        assert rows(db, "select id from objects") == [(2,)]

    def test_composite_identity(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        db.executemany(
            "insert into memberships (group_id, user_id) values (?, ?)", [(1, 2), (1, 3)]
        )

        mapper.delete_record(conn, Membership(group_id=1, user_id=3))

        assert conn.statements == [
            ("delete from memberships where group_id = ?1 and user_id = ?2", (1, 3)),
        ]
        assert rows(db, "select user_id from memberships") == [(2,)]

    def test_requires_identity(self, mapper: Mapper, conn: RecordingConnection) -> None:
        with pytest.raises(MissingIdentityError):
            mapper.delete_record(conn, Note())
        assert conn.statements == []


class TestTransaction:
    def test_commits_on_success(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        with transaction(conn) as tx:
            mapper.create_record(tx, Object(name="a"))

        assert conn.commits == 1
        assert rows(db, "select name from objects") == [("a",)]

    def test_rolls_back_on_error(self, mapper: Mapper, conn: RecordingConnection, db) -> None:
        with pytest.raises(RuntimeError):
            with transaction(conn) as tx:
                mapper.create_record(tx, Object(name="a"))
                raise RuntimeError("abort")

        assert conn.commits == 0
        assert conn.rollbacks == 1
        assert rows(db, "select name from objects") == []
