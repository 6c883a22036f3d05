from __future__ import annotations

import importlib.util
import sys
from pathlib import Path

import pytest

_START = Path(__file__).resolve().parent
_pkg_root = _START
while _pkg_root != _pkg_root.parent and not (_pkg_root / "__init__.py").exists():
    _pkg_root = _pkg_root.parent

# The repository root is the ``gg_toolkit`` package; expose it under that
# name when the project has not been installed.
if "gg_toolkit" not in sys.modules and importlib.util.find_spec("gg_toolkit") is None:
    _spec = importlib.util.spec_from_file_location(
        "gg_toolkit",
        _pkg_root / "__init__.py",
        submodule_search_locations=[str(_pkg_root)],
    )
    _module = importlib.util.module_from_spec(_spec)
    sys.modules["gg_toolkit"] = _module
    _spec.loader.exec_module(_module)


@pytest.fixture
def mpg_small():
    import pandas as pd

    return pd.DataFrame(
        {
            "displ": [1.8, 2.0, 2.8, 3.1, 4.2, 5.3, 5.7, 6.5],
            "hwy": [29.0, 31.0, 26.0, 27.0, 20.0, 17.0, 17.0, 12.0],
            "cyl": [4, 4, 6, 6, 8, 8, 8, 8],
            "drv": ["f", "f", "f", "4", "4", "r", "r", "4"],
            "class": ["compact", "compact", "midsize", "midsize", "suv", "suv", "2seater", "suv"],
        }
    )


@pytest.fixture(autouse=True)
def _reset_theme():
    import gg_toolkit.theme_context as ctx

    saved = ctx._global_theme
    yield
    ctx._global_theme = saved
