"""Root test configuration: a throwaway site tree and its build context"""

import pytest

from mdsite.config import Settings
from mdsite.core.context import BuildContext


_SITE_DIRS = ["posts", "pages", "wwwroot", "layouts"]


@pytest.fixture(name="site_dir")
def site_dir_fixture(tmp_path):
    """Empty content, output, and layout directories under tmp_path."""
    for name in _SITE_DIRS:
        (tmp_path / name).mkdir()
    return tmp_path


@pytest.fixture(name="settings")
def settings_fixture(site_dir):
    return Settings(
        site_name="test",
        site_title="Test Site",
        posts_dir=str(site_dir / "posts"),
        pages_dir=str(site_dir / "pages"),
        output_dir=str(site_dir / "wwwroot"),
        layouts_dir=str(site_dir / "layouts"),
        render_timeout=5.0,
    )


@pytest.fixture(name="ctx")
def ctx_fixture(settings):
    return BuildContext.create(settings)
