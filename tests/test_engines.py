import pytest

from core.renderer.engines import ENGINES, get_engine
from core.renderer.errors import ConfigurationError
from core.renderer.models import BrowserEngine


def test_every_engine_has_an_entry():
    assert set(ENGINES) == set(BrowserEngine)


@pytest.mark.parametrize("name", ["chromium", "webkit", "firefox"])
def test_engine_selects_matching_browser_type(name, fake_playwright):
    spec = get_engine(name)
    assert spec.browser_type(fake_playwright) is getattr(fake_playwright, name)
    assert spec.install_args == ("install", name)
    assert spec.is_installed(fake_playwright)


def test_is_installed_false_when_executable_missing(empty_playwright):
    assert not get_engine(BrowserEngine.WEBKIT).is_installed(empty_playwright)


def test_unknown_engine():
    with pytest.raises(ConfigurationError):
        get_engine("opera")
