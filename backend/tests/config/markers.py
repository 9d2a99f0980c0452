"""
Automatic markers for the e-Estoque tests.

Markers (declared in pyproject.toml) are derived from the test file path
and test name, so ``pytest -m unit`` or ``pytest -m odata`` select a slice
of the suite without decorating every class.
"""

import pytest

# marker names -> substrings of the test file path
PATH_MARKERS = (
    (("unit",), "unit"),
    (("integration",), "integration"),
    (("api",), "_api"),
    (("services",), "service"),
    (("repositories", "database"), "repo"),
    (("sales",), "sale"),
    (("cli",), "manage"),
)

# marker names -> substrings of the file path or the test name
NAME_MARKERS = (
    (("auth", "security"), ("auth",)),
    (("odata",), ("odata",)),
    (("stock",), ("stock", "reserv")),
)


def pytest_collection_modifyitems(config, items):
    for item in items:
        path = str(item.fspath)
        name = item.name
        markers = set()
        for names, fragment in PATH_MARKERS:
            if fragment in path:
                markers.update(names)
        for names, fragments in NAME_MARKERS:
            if any(fragment in path or fragment in name for fragment in fragments):
                markers.update(names)
        for marker in sorted(markers):
            item.add_marker(getattr(pytest.mark, marker))
