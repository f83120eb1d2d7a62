#!/usr/bin/env python3
# Example usage of embedded_json_db

from embedded_json_db import Database

USERS = [
    {"id": 1, "name": "Alice", "dept": "eng", "age": 33, "profile": {"city": "Wien"}},
    {"id": 2, "name": "Bob", "dept": "ops", "age": 27, "profile": {"city": "Graz"}},
    {"id": 3, "name": "Carol", "dept": "eng", "age": 41, "profile": {"city": "Linz"}},
]

def main() -> None:
    # Open (or create) the JSON file; every mutation is written through.
    db = Database("demo.json", indexes=[("users", "id", "unique"), ("users", "dept")])

    db.set("users", USERS)
    db.set("settings.theme", "dark")
    print("Theme:", db.get("settings.theme"))
    print("Second user's city:", db.get("users[1].profile.city"))

    # Append and patch
    db.push("users", {"id": 4, "name": "Dan", "dept": "sales", "age": 19})
    db.update("users", {"id": 2}, {"profile": {"zip": "8010"}})
    print("Bob:", db.find_by_field("users", "id", 2))

    # Index-assisted lookups
    print("Engineers:", [u["name"] for u in db.filter_by_field("users", "dept", ["eng"])])

    # Several writes, one flush
    db.batch([
        ("push", "users", {"id": 5, "name": "Eve", "dept": "eng", "age": 29}),
        {"method": "delete", "args": ["users", [4]]},
        ("set", "settings.version", 2),
    ])
    print("Users now:", [u["id"] for u in db.get("users")])

    # Remove a key from an object
    db.delete("settings", ["theme"])
    print("Settings:", db.get("settings"))

if __name__ == "__main__":
    main()
