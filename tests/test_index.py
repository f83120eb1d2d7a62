import json
import pytest
from embedded_json_db import (
    Database,
    IndexDefinition,
    IndexKind,
    ConfigurationError,
    TypeMismatchError,
)
from embedded_json_db.utils import index_key

def make_users():
    return [
        {"id": 1, "name": "Alice", "dept": "eng", "age": 30},
        {"id": 2, "name": "Bob", "dept": "ops", "age": 25},
        {"id": 3, "name": "Carol", "dept": "eng", "age": 41},
        {"id": 4, "name": "Dan", "dept": "sales", "age": 30},
        {"id": 5, "name": "Eve", "dept": "eng"},
    ]

def assert_index_consistent(db, path, field):
    """Index lookups agree with a linear scan of the live collection."""
    kind = db.get_indexes()[path][field].kind
    expected = {}
    for pos, item in enumerate(db.get(path)):
        if isinstance(item, dict) and item.get(field) is not None:
            expected.setdefault(index_key(item[field]), []).append(pos)
    for key, positions in expected.items():
        if kind is IndexKind.UNIQUE:
            assert db.positions_of(path, field, key) == [positions[-1]]
            assert db.position_of(path, field, key) == positions[-1]
        else:
            assert db.positions_of(path, field, key) == positions
            assert db.position_of(path, field, key) == positions[0]

def test_create_and_lookup(tmp_path):
    db = Database(tmp_path / "db.json")
    db.set("users", make_users())
    db.create_index("users", "id", "unique").create_index("users", "dept", IndexKind.MULTI)

    assert db.position_of("users", "id", 3) == 2
    assert db.positions_of("users", "dept", "eng") == [0, 2, 4]
    assert db.position_of("users", "dept", "eng") == 0
    assert db.position_of("users", "id", 99) is None
    assert db.positions_of("users", "dept", "hr") == []
    assert db.positions_of("users", "age", 30) == []  # not indexed

    assert_index_consistent(db, "users", "id")
    assert_index_consistent(db, "users", "dept")

def test_first_position_zero_is_found(tmp_path):
    db = Database(tmp_path / "db.json")
    db.set("users", make_users())
    db.create_index("users", "dept", "multi")
    assert db.find_by_field("users", "dept", "eng")["id"] == 1

def test_skips_non_objects_and_missing_values(tmp_path):
    db = Database(tmp_path / "db.json")
    db.set("items", [{"k": "a"}, "scalar", None, {"other": 1}, {"k": None}, {"k": "a"}])
    db.create_index("items", "k")
    assert db.positions_of("items", "k", "a") == [0, 5]
    assert db.positions_of("items", "k", None) == []

def test_unique_index_last_wins(tmp_path):
    db = Database(tmp_path / "db.json")
    db.set("users", make_users())
    db.create_index("users", "name", "unique")
    db.push("users", {"id": 6, "name": "Alice"})
    assert db.position_of("users", "name", "Alice") == 5
    assert db.positions_of("users", "name", "Alice") == [5]

def test_number_and_string_keys_collide(tmp_path):
    db = Database(tmp_path / "db.json")
    db.set("rows", [{"v": 30}, {"v": "30"}, {"v": 30.0}, {"v": True}, {"v": "true"}])
    db.create_index("rows", "v")
    assert db.positions_of("rows", "v", 30) == [0, 1, 2]
    assert db.positions_of("rows", "v", "30") == [0, 1, 2]
    assert db.positions_of("rows", "v", True) == [3, 4]

def test_nested_field_index(tmp_path):
    db = Database(tmp_path / "db.json")
    db.set("users", [{"profile": {"city": "Wien"}}, {"profile": {"city": "Graz"}}])
    db.create_index("users", "profile.city")
    assert db.position_of("users", "profile.city", "Graz") == 1

def test_create_index_errors(tmp_path):
    db = Database(tmp_path / "db.json")
    db.set("settings", {"theme": "dark"})
    with pytest.raises(TypeMismatchError):
        db.create_index("settings", "theme")
    with pytest.raises(TypeMismatchError):
        db.create_index("missing", "id")
    db.set("users", make_users())
    with pytest.raises(ConfigurationError):
        db.create_index("users", "id", "fulltext")

def test_indexing_disabled(tmp_path):
    db = Database(tmp_path / "db.json", enable_indexing=False)
    db.set("users", make_users())
    with pytest.raises(ConfigurationError):
        db.create_index("users", "id")
    db.drop_index("users", "id")
    assert db.get_indexes() == {}
    assert db.position_of("users", "id", 1) is None
    assert db.query("users", {"id": 1}).stats.used_index is False

def test_redefinition_replaces(tmp_path):
    db = Database(tmp_path / "db.json")
    db.set("users", make_users())
    db.create_index("users", "dept", "multi")
    db.create_index("users", "dept", "unique")
    assert db.get_indexes()["users"]["dept"].kind is IndexKind.UNIQUE
    assert db.positions_of("users", "dept", "eng") == [4]

def test_drop_index(tmp_path):
    db = Database(tmp_path / "db.json")
    db.set("users", make_users())
    db.create_index("users", "id", "unique").create_index("users", "dept")
    db.drop_index("users", "dept")

    assert list(db.get_indexes()["users"]) == ["id"]
    assert db.positions_of("users", "dept", "eng") == []
    assert db.position_of("users", "id", 1) == 0

    db.drop_index("users", "id")
    db.drop_index("users", "id")  # absent: no-op
    assert db.get_indexes() == {}

def test_get_indexes_is_a_snapshot(tmp_path):
    db = Database(tmp_path / "db.json")
    db.set("users", make_users())
    db.create_index("users", "id", "unique")

    snap = db.get_indexes()
    assert snap == {"users": {"id": IndexDefinition("users", "id", IndexKind.UNIQUE)}}
    snap["users"].clear()
    snap["other"] = {}
    assert list(db.get_indexes()) == ["users"]
    assert "id" in db.get_indexes()["users"]

def test_consistency_after_mutations(tmp_path):
    db = Database(tmp_path / "db.json", auto_save=False)
    db.set("users", make_users())
    db.create_index("users", "id", "unique").create_index("users", "dept")

    def check():
        assert_index_consistent(db, "users", "id")
        assert_index_consistent(db, "users", "dept")

    db.push("users", [{"id": 6, "dept": "ops"}, {"id": 7, "dept": "eng"}])
    check()
    db.update("users", {"id": 2}, {"dept": "eng"})
    check()
    db.update("users", lambda u: u.get("name") == "Carol", {"dept": "hr"})
    check()
    db.delete("users", lambda u: u["dept"] == "sales")
    check()
    db.delete("users", [1, "6"], "id")
    check()
    db.set("users[0].dept", "legal")
    check()
    db.set("users", make_users()[:2])
    check()
    assert db.positions_of("users", "id", 5) == []

def test_replacing_collection_with_non_array_empties_index(tmp_path):
    db = Database(tmp_path / "db.json")
    db.set("users", make_users())
    db.create_index("users", "id", "unique")
    db.set("users", {"not": "a list"})
    assert db.position_of("users", "id", 1) is None
    db.set("users", [{"id": 1}])
    assert db.position_of("users", "id", 1) == 0

def test_parent_path_change_rebuilds(tmp_path):
    db = Database(tmp_path / "db.json")
    db.set("app.users", [{"id": 1}, {"id": 2}])
    db.create_index("app.users", "id", "unique")
    db.set("app", {"users": [{"id": 2}]})
    assert db.position_of("app.users", "id", 2) == 0
    assert db.position_of("app.users", "id", 1) is None
    db.delete("app")
    assert db.position_of("app.users", "id", 2) is None

def test_supplied_indexes_built_on_open(tmp_path):
    db_path = tmp_path / "db.json"
    db_path.write_text(json.dumps({"users": make_users()}), encoding="utf-8")

    db = Database(db_path, indexes=[{"path": "users", "field": "id", "kind": "unique"}, ("users", "dept")])
    assert db.position_of("users", "id", 4) == 3
    assert db.positions_of("users", "dept", "eng") == [0, 2, 4]
    assert db.get_indexes()["users"]["dept"].kind is IndexKind.MULTI

    no_auto = Database(db_path, auto_index=False, indexes=[("users", "id", "unique")])
    assert no_auto.get_indexes() == {}

    with pytest.raises(ConfigurationError):
        Database(db_path, indexes=[{"field": "id"}])
