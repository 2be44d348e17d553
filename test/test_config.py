import pytest

from hwpreader.core.config import ParserSettings, load_settings
from hwpreader.core.version import HwpVersion, VersionPolicy


def test_defaults(monkeypatch):
    for key in ("HWP_SUPPORTED_VERSION", "HWP_VERSION_POLICY", "HWP_SECTION_WORKERS", "HWP_PARSE_TIMEOUT"):
        monkeypatch.delenv(key, raising=False)
    s = load_settings()
    assert s.supported_version == HwpVersion(5, 1, 0, 0)
    assert s.version_policy is VersionPolicy.MINIMUM
    assert s.section_workers == 1
    assert s.parse_timeout == 0.0


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("HWP_SUPPORTED_VERSION", "5.0.3.0")
    monkeypatch.setenv("HWP_VERSION_POLICY", "EXACT")
    monkeypatch.setenv("HWP_SECTION_WORKERS", "4")
    monkeypatch.setenv("HWP_PARSE_TIMEOUT", "2.5")
    s = load_settings()
    assert s.supported_version == HwpVersion(5, 0, 3, 0)
    assert s.version_policy is VersionPolicy.EXACT
    assert s.section_workers == 4
    assert s.parse_timeout == 2.5


def test_bad_values_fall_back(monkeypatch):
    monkeypatch.setenv("HWP_SUPPORTED_VERSION", "five")
    monkeypatch.setenv("HWP_VERSION_POLICY", "whatever")
    monkeypatch.setenv("HWP_SECTION_WORKERS", "many")
    monkeypatch.setenv("HWP_PARSE_TIMEOUT", "-3")
    s = load_settings()
    assert s.supported_version == HwpVersion(5, 1, 0, 0)
    assert s.version_policy is VersionPolicy.MINIMUM
    assert s.section_workers == 1
    assert s.parse_timeout == 0.0


def test_settings_validation():
    with pytest.raises(ValueError):
        ParserSettings(section_workers=0)
