"""Shared persistence fixtures."""

from __future__ import annotations

import pytest

from tierwise.models.consultation import ConsolidatedResult
from tests.fakes import make_result


@pytest.fixture
def result() -> ConsolidatedResult:
    return make_result()
