import time
from embedded_json_db import Database
from rich.console import Console
import sys
import os

_force_tty = os.environ.get("FORCE_TTY", "").lower() in ("1", "true", "yes", "on")
_isatty = getattr(sys.stderr, "isatty", lambda: False)()
_console = Console(file=sys.stderr, force_terminal=(_isatty or _force_tty), color_system="standard")

def progress_printer(evt):
    phase = evt.get("phase", "")
    pct = int(evt.get("pct", 0))
    msg = evt.get("msg", "")
    if pct in (0, 100):
        parts = [p for p in (phase, f"{pct}%", (f"- {msg}" if msg else "")) if p]
        _console.print("[progress] " + " ".join(parts))

def make_rows(n):
    return [
        {
            "id": i,
            "email": f"user{i}@example.com",
            "age": 20 + i % 50,
            "group": f"g{i % 10}",
            "score": i % 97,
        }
        for i in range(n)
    ]

def test_performance_big_collection(tmp_path):
    db_path = tmp_path / "perf.json"
    N = 10_000

    t0 = time.perf_counter()
    db = Database(db_path, auto_save=False, on_progress=progress_printer)
    db.set("users", make_rows(N))
    db.save()
    t1 = time.perf_counter()
    _console.print(f"[perf] load + save {N} rows: {(t1 - t0):.3f}s")

    t2 = time.perf_counter()
    db.create_index("users", "id", "unique")
    db.create_index("users", "email", "unique")
    db.create_index("users", "age", "multi")
    t3 = time.perf_counter()
    _console.print(f"[perf] build 3 indexes: {(t3 - t2):.3f}s")

    plain = Database(db_path, enable_indexing=False)

    # Indexed equality vs linear scan
    t4 = time.perf_counter()
    fast = db.query("users", {"age": 42, "group": "g2"})
    t5 = time.perf_counter()
    slow = plain.query("users", {"age": 42, "group": "g2"})
    t6 = time.perf_counter()
    _console.print(f"[perf] indexed query matched={len(fast.data)}: {(t5 - t4):.4f}s")
    _console.print(f"[perf] linear query matched={len(slow.data)}: {(t6 - t5):.4f}s")
    assert fast.stats.used_index is True
    assert slow.stats.used_index is False
    assert [r["id"] for r in fast.data] == [r["id"] for r in slow.data]
    assert fast.stats.filtered_records == slow.stats.filtered_records > 0

    # Lookup by unique key
    target = N - 7
    assert db.find_by_field("users", "email", f"user{target}@example.com")["id"] == target
    assert plain.find_by_field("users", "email", f"user{target}@example.com")["id"] == target

    # Sorted, paginated, aggregated
    t7 = time.perf_counter()
    res = db.query(
        "users",
        {"group": "g3"},
        sort=[{"field": "score", "direction": "desc"}, {"field": "id"}],
        pagination={"page": 2, "page_size": 50},
        aggregation=[{"type": "count"}, {"type": "avg", "field": "age"}],
    )
    t8 = time.perf_counter()
    _console.print(f"[perf] sort+page+aggregate over {res.stats.filtered_records} rows: {(t8 - t7):.4f}s")
    assert len(res.data) == 50
    assert res.aggregations[0].value == N // 10

    # Mutations force full rebuilds of the three indexes
    t9 = time.perf_counter()
    for i in range(20):
        db.push("users", {"id": N + i, "email": f"new{i}@example.com", "age": 99})
    db.save()
    t10 = time.perf_counter()
    _console.print(f"[perf] 20 pushes with rebuilds: {(t10 - t9):.3f}s")
    assert db.positions_of("users", "age", 99) == list(range(N, N + 20))
