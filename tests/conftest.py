"""Pytest configuration for vvm3-provisioner tests."""
import sys
from pathlib import Path

# src-layout imports without an editable install
_SRC = Path(__file__).parent.parent / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from core.config import AppSettings


@pytest.fixture
def settings():
    """Settings with short bounds so timeout paths run fast."""
    return AppSettings(
        _env_file=None,
        request_timeout_seconds=0.2,
        confirmation_timeout_seconds=0.2,
        device_model='Pixel',
    )


@pytest.fixture
def events():
    return []
