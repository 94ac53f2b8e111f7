"""Item browsing load test with a custom iteration.

Each iteration lists items, then fetches one of them at random.  Stages
are given as plain dicts, the way they often come from other tools.
Run with:

    rampforge run examples/item_browse.py --max-failure-rate 0.01
"""

from __future__ import annotations

import random

from rampforge import IterationContext, LoadTestConfig, body_contains, status_is


async def browse(ctx: IterationContext) -> None:
    """List items, then open one."""
    listing = await ctx.request("GET", "/items", name="List Items")
    ctx.check(listing, {"list status is 200": status_is(200)})

    item_id = random.randint(1, 500)  # noqa: S311
    item = await ctx.request("GET", f"/items/{item_id}", name="Get Item")
    ctx.check(
        item,
        {
            "item status is 200": status_is(200),
            "item has a name": body_contains('"name"'),
        },
    )


test = LoadTestConfig(
    name="Item Browse",
    url="http://localhost:8080",
    headers={"Accept": "application/json"},
    stages=[
        {"duration": "1m", "target": 50},
        {"duration": "3m", "target": 50},
        {"duration": "30s", "target": 0},
    ],
    iteration=browse,
    pacing=(0.5, 2.0),
)
