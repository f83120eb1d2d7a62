#!/usr/bin/env python3
# Query pipeline walkthrough: filter, sort, paginate, aggregate.

import random

from embedded_json_db import Database

DEPTS = ["eng", "ops", "sales", "hr"]

def progress(evt):
    if evt.get("pct") in (0, 100) and evt.get("phase", "").startswith("index"):
        print(f"[progress] {evt['phase']} {evt['pct']}% {evt.get('msg', '')}")

def main() -> None:
    rnd = random.Random(7)
    db = Database("report.json", auto_save=False, on_progress=progress)
    db.set("staff", [
        {"id": i, "dept": rnd.choice(DEPTS), "salary": rnd.randrange(40, 160) * 1000}
        for i in range(1, 501)
    ])
    db.create_index("staff", "dept")

    res = db.query(
        "staff",
        {"dept": "eng"},
        sort=[{"field": "salary", "direction": "desc"}, {"field": "id"}],
        pagination={"page": 1, "page_size": 5},
        select=["id", "salary"],
        aggregation=[
            {"type": "count"},
            {"type": "avg", "field": "salary"},
            {"type": "max", "field": "salary"},
        ],
    )
    print("Top earners in eng:", res.data)
    print("Stats:", res.stats)
    print("Pages:", res.pagination.total_pages)
    for agg in res.aggregations:
        print(f"  {agg.type}({agg.field or ''}) = {agg.value}")

    groups = db.aggregate("staff", [{"type": "group", "group_by": "dept"}])[0].value
    print("Headcount:", {dept: len(rows) for dept, rows in groups.items()})
    print("Departments:", db.distinct("staff", "dept"))
    print("Six-figure salaries:", db.count("staff", lambda r: r["salary"] >= 100_000))

    db.save()

if __name__ == "__main__":
    main()
