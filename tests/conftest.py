from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import structlog

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Undo the global structlog setup done by in-process ``cli.main`` calls."""
    yield
    structlog.reset_defaults()
