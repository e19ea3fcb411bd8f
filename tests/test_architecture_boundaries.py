from __future__ import annotations

import importlib.util
import sys
from pathlib import Path
from types import ModuleType

SCRIPT_PATH = (
    Path(__file__).resolve().parents[1] / "scripts" / "check_architecture_boundaries.py"
)


def _load_checker() -> ModuleType:
    spec = importlib.util.spec_from_file_location(
        "check_architecture_boundaries", SCRIPT_PATH
    )
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    return module


def test_calculation_layers_have_no_boundary_violations() -> None:
    checker = _load_checker()

    assert checker.collect_violations() == []


def test_parse_layer_recognizes_bounded_context_layers() -> None:
    checker = _load_checker()

    assert checker.parse_layer("forecast_graph.calculation.domain.engine") == (
        "calculation",
        "domain",
    )
    assert checker.parse_layer("forecast_graph.calculation.interface") == (
        "calculation",
        "interface",
    )
    assert checker.parse_layer("forecast_graph.shared.kernel.tools.logger") is None
