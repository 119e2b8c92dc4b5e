"""
compose-cat CLI helper tests: version lookup and logging setup.
"""

import logging
from importlib.metadata import PackageNotFoundError
from pathlib import Path
import sys
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
import compose_cat  # noqa: E402
from compose_cat import cli_utils  # noqa: E402
from compose_cat.cli_utils import configure_logging, get_cli_version  # noqa: E402


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    package = logging.getLogger("compose_cat")
    handlers, root_level, package_level = root.handlers[:], root.level, package.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(root_level)
    package.setLevel(package_level)


class TestGetCliVersion:
    def test_installed_distribution(self):
        with patch.object(cli_utils, "version", return_value="1.2.3") as mock_version:
            assert get_cli_version() == "1.2.3"
        mock_version.assert_called_once_with("compose-cat")

    def test_source_checkout_uses_build_version(self):
        with patch.object(cli_utils, "version", side_effect=PackageNotFoundError("compose-cat")):
            assert get_cli_version() == compose_cat.__version__


class TestConfigureLogging:
    @pytest.mark.parametrize("name, level", [
        ("debug", logging.DEBUG),
        ("WARNING", logging.WARNING),
        ("bogus", logging.INFO),
    ])
    def test_package_level(self, restore_logging, name, level):
        configure_logging(name)

        assert logging.getLogger("compose_cat").level == level
        assert logging.getLogger().handlers[0].formatter._fmt == cli_utils.LOG_FORMAT
