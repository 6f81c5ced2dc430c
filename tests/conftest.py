from __future__ import annotations

from pathlib import Path
import sys
from typing import Callable, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from plugins import PluginManager
from tests.archives import write_mod_archive


@pytest.fixture()
def make_mod(tmp_path: Path) -> Callable[..., Path]:
    """Factory building mod archives below ``tmp_path/build``."""

    def factory(filename: str, name: Optional[str] = None, **kwargs) -> Path:
        return write_mod_archive(tmp_path / "build" / filename, name, **kwargs)

    return factory


@pytest.fixture()
def messages() -> List[str]:
    return []


@pytest.fixture()
def collecting_logger(messages: List[str]) -> Callable[[str], None]:
    return messages.append


@pytest.fixture()
def isolated_manager():
    """Return a fresh plugin manager for isolated tests."""

    manager = PluginManager()
    yield manager
    manager._plugins.clear()
    manager._exposed.clear()
