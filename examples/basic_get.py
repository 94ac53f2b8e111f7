"""Basic GET load test, the simplest possible RampForge script.

Ramps to 20 virtual users, eases back to 10, then ramps down, checking every
response for HTTP 200 and pausing one second between iterations.
Run it with:

    rampforge run examples/basic_get.py
"""

from __future__ import annotations

from rampforge import LoadTestConfig, Stage, status_is

test = LoadTestConfig(
    name="Basic GET",
    url="http://localhost:8080/",
    stages=[
        Stage(duration="30s", target=20),
        Stage(duration="1m30s", target=10),
        Stage(duration="20s", target=0),
    ],
    checks={"status was 200": status_is(200)},
    pacing=1.0,
)
