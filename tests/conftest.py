"""
Shared pytest fixtures for prefetch viewer tests.
"""
import pytest

from tests._prefetch_test_utils import FakeProvider, png_bytes


@pytest.fixture
def provider():
    """Fake provider that always succeeds."""
    p = FakeProvider()
    yield p
    if p.gate is not None:
        p.gate.set()


@pytest.fixture
def png_data():
    """Encoded 8x6 red PNG."""
    return png_bytes()


@pytest.fixture
def png_file(tmp_path, png_data):
    """PNG written to a temporary file."""
    path = tmp_path / "no_image.png"
    path.write_bytes(png_data)
    return path


@pytest.fixture
def mirror_dir(tmp_path):
    """Empty directory for mirrored downloads."""
    d = tmp_path / "mirror"
    d.mkdir()
    return d


@pytest.fixture
def settings_manager(tmp_path):
    """SettingsManager backed by a throwaway INI file."""
    from core.settings import SettingsManager
    manager = SettingsManager(path=tmp_path / "settings.ini")
    yield manager
    manager.clear()
