import pytest

from typedquery import (
    BOOLEAN,
    INTEGER,
    REAL,
    TEXT,
    AutoIncrement,
    Datastore,
    ForeignKey,
    NotNull,
    PrimaryKey,
    SchemaError,
    TypeRegistry,
    Unique,
    column,
)
from typedquery.backend import Statement
from typedquery.exec.compiler import compile_create_table


def _ds(tmp_path, name="schema.db"):
    return Datastore.open(tmp_path / name)


def test_duplicate_column_name_fails(tmp_path):
    ds = _ds(tmp_path)
    with pytest.raises(SchemaError, match="Duplicate column name"):
        ds.define_table("users", column("id", INTEGER), column("email", TEXT), column("id", TEXT))
    assert ds.tables == {}


def test_duplicate_table_name_fails(tmp_path):
    ds = _ds(tmp_path)
    ds.define_table("users", column("id", INTEGER))
    with pytest.raises(SchemaError, match="already exists"):
        ds.define_table("users", column("id", INTEGER))


def test_dangling_foreign_key_fails(tmp_path):
    ds = _ds(tmp_path)
    other = _ds(tmp_path, "other.db")
    parents = other.define_table("parents", column("id", INTEGER, PrimaryKey))

    with pytest.raises(SchemaError, match="not registered"):
        ds.define_table("children", column("parent_id", INTEGER, ForeignKey(parents.c.id)))
    with pytest.raises(SchemaError, match="not registered"):
        ds.define_table("children", column("parent_id", INTEGER, ForeignKey(column("id", INTEGER))))
    assert ds.tables == {}


def test_foreign_key_to_registered_column(tmp_path):
    ds = _ds(tmp_path)
    parents = ds.define_table("parents", column("id", INTEGER, PrimaryKey))
    children = ds.define_table("children", column("parent_id", INTEGER, ForeignKey(parents.c.id)))

    fk = children.c.parent_id.foreign_key
    assert fk is not None
    assert fk.target is parents.c.id


def test_foreign_key_type_mismatch_fails(tmp_path):
    ds = _ds(tmp_path)
    parents = ds.define_table("parents", column("id", INTEGER, PrimaryKey))
    with pytest.raises(SchemaError, match="type mismatch"):
        ds.define_table("children", column("parent_id", TEXT, ForeignKey(parents.c.id)))


def test_auto_increment_requires_integral_type():
    with pytest.raises(SchemaError, match="integral"):
        column("id", TEXT, AutoIncrement)
    with pytest.raises(SchemaError):
        column("id", REAL, PrimaryKey, AutoIncrement)
    assert column("id", INTEGER, PrimaryKey, AutoIncrement).auto_increment


def test_only_one_primary_key(tmp_path):
    ds = _ds(tmp_path)
    with pytest.raises(SchemaError, match="PRIMARY KEY"):
        ds.define_table("pairs", column("a", INTEGER, PrimaryKey), column("b", INTEGER, PrimaryKey))


def test_invalid_types_and_properties():
    with pytest.raises(SchemaError):
        column("x", "VARCHAR")
    with pytest.raises(SchemaError):
        column("x", INTEGER, "UNIQUE")
    with pytest.raises(SchemaError, match="Duplicate property"):
        column("x", INTEGER, Unique, Unique)
    with pytest.raises(SchemaError):
        column("", INTEGER)


def test_type_resolution_by_name_and_python_type():
    assert column("a", "integer").witness is INTEGER
    assert column("b", str).witness is TEXT
    assert column("c", bool).witness is BOOLEAN
    assert column("d", int).witness is INTEGER


def test_columns_are_bound_to_their_table(tmp_path):
    ds = _ds(tmp_path)
    name_col = column("name", TEXT, NotNull)
    users = ds.define_table("users", column("id", INTEGER, PrimaryKey, AutoIncrement), name_col)

    assert users.column_names() == ["id", "name"]
    assert users.c.name.table is users
    assert users["name"] is users.c.name
    assert users.c.name.qualified_name == "users.name"
    assert users.primary_key is users.c.id
    assert users.auto_increment_column is users.c.id
    assert users.c.name.not_null
    assert users.c.id in users
    # the unbound definition is left untouched
    assert name_col.table is None
    with pytest.raises(KeyError):
        users["missing"]


def test_bound_column_cannot_move_to_another_table(tmp_path):
    ds = _ds(tmp_path)
    users = ds.define_table("users", column("id", INTEGER))
    with pytest.raises(SchemaError, match="already belongs"):
        ds.define_table("admins", users.c.id)


def test_no_tables_after_initialize(tmp_path):
    ds = _ds(tmp_path)
    ds.define_table("users", column("id", INTEGER))
    ds.initialize()
    with pytest.raises(SchemaError, match="initialized"):
        ds.define_table("late", column("id", INTEGER))
    assert list(ds.tables) == ["users"]


def test_datastore_registry_must_know_column_types(tmp_path):
    ds = Datastore.open(tmp_path / "r.db")
    ds.registry = TypeRegistry((INTEGER,))
    with pytest.raises(SchemaError):
        ds.define_table("notes", column("id", INTEGER), column("body", TEXT))


def test_create_table_ddl(db):
    coffees_sql = compile_create_table(db.coffees).sql
    assert coffees_sql.startswith('CREATE TABLE IF NOT EXISTS "coffees"')
    assert '"name" TEXT PRIMARY KEY' in coffees_sql
    assert 'FOREIGN KEY ("sup_id") REFERENCES "suppliers" ("id")' in coffees_sql

    tasks_sql = compile_create_table(db.tasks).sql
    assert '"id" INTEGER PRIMARY KEY AUTOINCREMENT' in tasks_sql


def test_create_and_drop_tables(db):
    listing = 'SELECT name FROM sqlite_master WHERE type = \'table\' AND name NOT LIKE \'sqlite_%\''

    def tables():
        with db.ds.session() as sess:
            return sorted(r[0] for r in sess.connection().execute_query(Statement(listing)).fetchall())

    assert tables() == ["coffees", "suppliers", "tasks"]
    # IF NOT EXISTS makes bootstrap repeatable
    db.ds.create_tables()
    db.ds.drop_tables()
    assert tables() == []
    assert db.ds.require_table("coffees") is db.coffees
    with pytest.raises(SchemaError, match="not found"):
        db.ds.require_table("teas")


def test_non_column_definition_is_a_schema_error(tmp_path):
    ds = _ds(tmp_path)
    with pytest.raises(SchemaError, match="Not a column"):
        ds.define_table("t", "oops")
    with pytest.raises(SchemaError, match="Not a column"):
        ds.define_table("t", column("id", INTEGER), None)
    assert ds.tables == {}


def test_schema_is_frozen_after_initialize(tmp_path):
    ds = _ds(tmp_path)
    users = ds.define_table("users", column("id", INTEGER))
    ds.registry = TypeRegistry((INTEGER, TEXT))
    ds.initialize()

    with pytest.raises(TypeError):
        ds.tables["admins"] = users
    with pytest.raises(TypeError):
        del ds.tables["users"]
    with pytest.raises(SchemaError, match="initialized"):
        ds.registry = TypeRegistry((INTEGER,))
    with pytest.raises(SchemaError, match="initialized"):
        ds.backend = None
    assert dict(ds.tables) == {"users": users}
    assert ds.registry.names() == ["INTEGER", "TEXT"]
