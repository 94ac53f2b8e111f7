"""``rampforge init``: scaffold a new load-test script from a template."""

from __future__ import annotations

from pathlib import Path
from string import Template

import typer
from rich.console import Console

console = Console(stderr=True)

_SCRIPT_TEMPLATE = Template('''\
"""Load test: $name.

Run with:
    rampforge run $filename
"""

from __future__ import annotations

from rampforge import LoadTestConfig, Stage, status_is

test = LoadTestConfig(
    name="$name",
    url="$url",
    stages=[
        Stage(duration="30s", target=20),
        Stage(duration="1m", target=20),
        Stage(duration="10s", target=0),
    ],
    checks={"status was 200": status_is(200)},
    pacing=1.0,
)
''')


def init_cmd(
    name: str = typer.Argument(
        "my_load_test",
        help="Name for the test (used as the filename).",
    ),
    url: str = typer.Option(
        "http://localhost:8080/",
        "--url",
        help="Endpoint the generated script targets.",
    ),
) -> None:
    """Scaffold a new load-test script in the current directory."""
    # Sanitise the name for use as a module name
    safe_name = "".join(c if c.isalnum() or c == "_" else "_" for c in name).lower()
    if not safe_name or safe_name[0].isdigit():
        safe_name = "test_" + safe_name

    filename = f"{safe_name}.py"
    display_name = name.replace("_", " ").replace("-", " ").title()

    target = Path.cwd() / filename
    if target.exists():
        console.print(f"[red]File already exists:[/red] {filename}")
        raise typer.Exit(code=1)

    target.write_text(_SCRIPT_TEMPLATE.substitute(name=display_name, filename=filename, url=url))
    console.print(f"[green]Created script:[/green] {filename}")
