"""Dynamic load-test script loading via importlib."""

from __future__ import annotations

import importlib.util
import sys
from pathlib import Path

from rampforge._internal.errors import ConfigError, ScriptError
from rampforge.dsl.config import LoadTestConfig


def load_script(file_path: str | Path) -> LoadTestConfig:
    """Load a load-test configuration from a Python script.

    Imports the file with ``importlib`` and returns the first module-level
    ``LoadTestConfig`` instance it defines.

    Args:
        file_path: Path to the Python script.

    Returns:
        The script's ``LoadTestConfig``.

    Raises:
        ScriptError: If the file does not exist, is not a ``.py`` file,
            fails to import, or defines no ``LoadTestConfig``.
        ConfigError: If the script's configuration is invalid.
    """
    path = Path(file_path)

    if not path.exists():
        msg = f"Script file not found: {path}"
        raise ScriptError(msg)

    if path.suffix != ".py":
        msg = f"Script file must be a .py file, got: {path}"
        raise ScriptError(msg)

    module_name = f"rampforge_script_{path.stem}"

    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        msg = f"Could not create module spec for: {path}"
        raise ScriptError(msg)

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module

    try:
        spec.loader.exec_module(module)
    except ConfigError:
        sys.modules.pop(module_name, None)
        raise
    except Exception as exc:
        sys.modules.pop(module_name, None)
        msg = f"Failed to import script {path}: {exc}"
        raise ScriptError(msg) from exc

    configs = [obj for obj in vars(module).values() if isinstance(obj, LoadTestConfig)]

    if not configs:
        sys.modules.pop(module_name, None)
        msg = (
            f"No LoadTestConfig found in {path}. "
            f"Define one at module level, e.g. `test = LoadTestConfig(url=..., stages=[...])`."
        )
        raise ScriptError(msg)

    return configs[0]
