import datetime as dt
import decimal
import uuid

import pytest

from typedquery import (
    BLOB,
    BOOLEAN,
    DATE,
    DATETIME,
    DECIMAL,
    INTEGER,
    REAL,
    TEXT,
    UUID,
    Datastore,
    DecodeError,
    PrimaryKey,
    QueryError,
    SchemaError,
    SQLiteBackend,
    TypeWitness,
    column,
    default_registry,
    insert,
    insert_batch,
    select,
)


def test_encode_checks_python_type():
    with pytest.raises(QueryError):
        INTEGER.encode_value(True)
    with pytest.raises(QueryError):
        INTEGER.encode_value("1")
    with pytest.raises(QueryError):
        DATE.encode_value(dt.datetime(2024, 1, 1, 12, 0))
    assert REAL.encode_value(7) == 7.0
    assert BOOLEAN.encode_value(True) == 1
    assert DATE.encode_value(dt.date(2024, 2, 29)) == "2024-02-29"
    assert INTEGER.encode_value(None) is None


def test_decode_rejects_foreign_data():
    with pytest.raises(DecodeError):
        INTEGER.decode_value("seven")
    with pytest.raises(DecodeError):
        BOOLEAN.decode_value(2)
    with pytest.raises(DecodeError):
        DATE.decode_value("not a date")
    with pytest.raises(DecodeError):
        DECIMAL.decode_value("1.2.3")
    with pytest.raises(DecodeError):
        TEXT.decode_value(b"bytes")
    assert TEXT.decode_value(None) is None


def test_registry_rejects_duplicates_and_unknown_types():
    reg = default_registry()
    with pytest.raises(SchemaError):
        reg.register(INTEGER)
    with pytest.raises(SchemaError):
        reg.resolve("MONEY")
    with pytest.raises(SchemaError):
        reg.resolve(complex)
    assert "integer" in reg
    assert reg.names()[:3] == ["INTEGER", "TEXT", "REAL"]


def test_every_builtin_type_round_trips_through_sqlite(tmp_path):
    ds = Datastore.open(tmp_path / "types.db")
    samples = ds.define_table(
        "samples",
        column("id", INTEGER, PrimaryKey),
        column("label", TEXT),
        column("ratio", REAL),
        column("flag", BOOLEAN),
        column("day", DATE),
        column("at", DATETIME),
        column("amount", DECIMAL),
        column("data", BLOB),
        column("ref", UUID),
    )
    ds.initialize()
    ds.create_tables()

    values = {
        "id": 7,
        "label": "Acme, Inc.",
        "ratio": 0.125,
        "flag": True,
        "day": dt.date(2024, 5, 17),
        "at": dt.datetime(2024, 5, 17, 8, 30, 15, 250),
        "amount": decimal.Decimal("12.50"),
        "data": b"\x00\x01\xff",
        "ref": uuid.UUID("12345678-1234-5678-1234-567812345678"),
    }
    with ds.session():
        insert(*(samples[name](v) for name, v in values.items())).result()
        row = select(*samples.columns).from_(samples).result().first()

    assert row.as_tuple() == tuple(values.values())
    assert type(row[samples.c.flag]) is bool
    assert type(row[samples.c.amount]) is decimal.Decimal


def test_null_values_round_trip(tmp_path):
    ds = Datastore.open(tmp_path / "nulls.db")
    t = ds.define_table("t", column("id", INTEGER, PrimaryKey), column("day", DATE))
    ds.initialize()
    ds.create_tables()
    with ds.session():
        insert(t.c.id(1), t.c.day(None)).result()
        assert select(t.c.day).from_(t).result().first() == (None,)


def test_custom_witness(tmp_path):
    tags = TypeWitness(
        name="TAGS",
        python_type=tuple,
        sql_type="TEXT",
        encode=lambda v: ",".join(v),
        decode=lambda raw: tuple(raw.split(",")),
    )
    reg = default_registry()
    reg.register(tags)

    ds = Datastore(backend=SQLiteBackend(str(tmp_path / "tags.db")), registry=reg)
    notes = ds.define_table(
        "notes",
        column("id", INTEGER, PrimaryKey, registry=reg),
        column("tags", "tags", registry=reg),
    )
    ds.initialize()
    ds.create_tables()

    assert notes.c.tags.witness is tags
    with ds.session():
        insert(notes.c.id(1), notes.c.tags(("coffee", "beans"))).result()
        row = select(notes.c.tags).from_(notes).result().first()
    assert row[notes.c.tags] == ("coffee", "beans")

    with pytest.raises(SchemaError):
        column("tags", "tags")


def _value_table(tmp_path, witness):
    ds = Datastore.open(tmp_path / "values.db")
    t = ds.define_table("vals", column("id", INTEGER, PrimaryKey), column("v", witness))
    ds.initialize()
    ds.create_tables()
    return ds, t


def _ids(query):
    return sorted(r[0] for r in query.result())


UTC = dt.timezone.utc
PLUS_2 = dt.timezone(dt.timedelta(hours=2))
MINUS_5 = dt.timezone(dt.timedelta(hours=-5))

ORDERED_SAMPLES = [
    pytest.param(TEXT, ["pear", "Apple", "apple", "zebra", "äpfel"], id="text"),
    pytest.param(BOOLEAN, [True, False, True], id="boolean"),
    pytest.param(
        DATE,
        [dt.date(2024, 5, 17), dt.date(999, 1, 1), dt.date(2024, 12, 1), dt.date(2023, 1, 31)],
        id="date",
    ),
    pytest.param(
        DATETIME,
        [
            dt.datetime(2024, 1, 1, 10, 0),
            dt.datetime(2024, 1, 1, 10, 0, 0, 1),
            dt.datetime(2023, 12, 31, 23, 59, 59),
            dt.datetime(2024, 1, 1, 9, 30),
        ],
        id="datetime",
    ),
    pytest.param(
        DATETIME,
        [
            dt.datetime(2024, 1, 1, 11, 0, tzinfo=PLUS_2),
            dt.datetime(2024, 1, 1, 10, 0, tzinfo=UTC),
            dt.datetime(2024, 1, 1, 4, 30, tzinfo=MINUS_5),
            dt.datetime(2024, 1, 1, 9, 0, 0, 500, tzinfo=UTC),
        ],
        id="datetime-aware",
    ),
    pytest.param(BLOB, [b"\x00\x01", b"\xff", b"\x00", b"a"], id="blob"),
    pytest.param(
        UUID,
        [
            uuid.UUID(int=2**127),
            uuid.UUID(int=5),
            uuid.UUID("0a000000-0000-0000-0000-000000000000"),
            uuid.UUID("ffffffff-ffff-ffff-ffff-fffffffffff0"),
        ],
        id="uuid",
    ),
]


@pytest.mark.parametrize("witness, values", ORDERED_SAMPLES)
def test_backend_ordering_matches_python(tmp_path, witness, values):
    ds, t = _value_table(tmp_path, witness)
    pivot = sorted(values)[len(values) // 2]
    with ds.session():
        insert_batch(list(enumerate(values)), table=t).result()
        below = _ids(select(t.c.id).from_(t).where(t.c.v.less_than(pivot)))
        at_or_above = _ids(select(t.c.id).from_(t).where(t.c.v.greater_or_equal(pivot)))
        same = _ids(select(t.c.id).from_(t).where(t.c.v.equals(pivot)))
        lo, hi = select(t.c.v.min(), t.c.v.max()).from_(t).result().first()

    assert below == [i for i, v in enumerate(values) if v < pivot]
    assert at_or_above == [i for i, v in enumerate(values) if v >= pivot]
    assert same == [i for i, v in enumerate(values) if v == pivot]
    assert lo == min(values)
    assert hi == max(values)


def test_aware_datetimes_compare_by_instant(tmp_path):
    ds, t = _value_table(tmp_path, DATETIME)
    nine_utc = dt.datetime(2024, 1, 1, 11, 0, tzinfo=PLUS_2)
    with ds.session():
        insert(t.c.id(1), t.c.v(nine_utc)).result()
        earlier = _ids(select(t.c.id).from_(t).where(t.c.v.less_than(dt.datetime(2024, 1, 1, 10, 0, tzinfo=UTC))))
        same = _ids(select(t.c.id).from_(t).where(t.c.v.equals(dt.datetime(2024, 1, 1, 9, 0, tzinfo=UTC))))
        stored = select(t.c.v).from_(t).result().first()[0]

    assert earlier == [1]
    assert same == [1]
    assert stored == nine_utc
    assert stored.utcoffset() == dt.timedelta(0)


def test_decimal_storage_is_canonical():
    assert DECIMAL.encode_value(decimal.Decimal("9.50")) == "9.5"
    assert DECIMAL.encode_value(decimal.Decimal("1E+2")) == "100"
    assert DECIMAL.encode_value(decimal.Decimal("-0.00")) == "0"
    assert DECIMAL.encode_value(decimal.Decimal("0.000120")) == "0.00012"
    long_value = decimal.Decimal("1234567890.12345678901234567890123")
    assert DECIMAL.encode_value(long_value) == "1234567890.12345678901234567890123"
    with pytest.raises(QueryError):
        DECIMAL.encode_value(decimal.Decimal("NaN"))
    with pytest.raises(QueryError):
        DECIMAL.encode_value(decimal.Decimal("-Infinity"))


def test_decimal_equality_matches_numeric_value(tmp_path):
    ds, t = _value_table(tmp_path, DECIMAL)
    with ds.session():
        insert_batch([(1, decimal.Decimal("9.50")), (2, decimal.Decimal("100"))], table=t).result()
        nine_and_a_half = _ids(select(t.c.id).from_(t).where(t.c.v.equals(decimal.Decimal("9.5"))))
        hundred = _ids(select(t.c.id).from_(t).where(t.c.v.is_in([decimal.Decimal("1E+2")])))
        others = _ids(select(t.c.id).from_(t).where(t.c.v.not_equals(decimal.Decimal("9.500"))))
        values = sorted(r[0] for r in select(t.c.v).from_(t).result())

    assert nine_and_a_half == [1]
    assert hundred == [2]
    assert others == [2]
    assert values == [decimal.Decimal("9.5"), decimal.Decimal("100")]


def test_decimal_columns_reject_ordering():
    price = column("price", DECIMAL)
    with pytest.raises(QueryError, match="no backend order"):
        price.less_than(decimal.Decimal("10"))
    with pytest.raises(QueryError):
        price.greater_or_equal(decimal.Decimal("10"))
    with pytest.raises(QueryError, match="MAX"):
        price.max()
    with pytest.raises(QueryError, match="MIN"):
        price.min()
    with pytest.raises(QueryError):
        price(decimal.Decimal("NaN"))
    assert not DECIMAL.orderable
    assert all(w.orderable for w in (INTEGER, TEXT, REAL, BOOLEAN, DATE, DATETIME, BLOB, UUID))
