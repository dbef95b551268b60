from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from mfexplorer.logging import reset_logging


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(getattr(item, "path", item.fspath)))

        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def _detach_package_log_handlers() -> Iterator[None]:
    yield
    reset_logging()
