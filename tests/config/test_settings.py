"""Tests for PocSettings — unified settings with TOML source."""

from pathlib import Path

import click
import pytest

from pocctl.config.settings import PocSettings


class TestPocSettingsDefaults:
    def test_all_defaults(self) -> None:
        """With no TOML and no env vars, all fields use code defaults."""
        settings = PocSettings.from_cli()
        assert settings.config_path is None
        assert settings.json_output is False
        assert settings.quiet is False
        assert settings.verbose is False
        assert settings.http.timeout == 5.0
        assert settings.runner.target == "http://127.0.0.1:8080"

    def test_frozen(self) -> None:
        settings = PocSettings.from_cli()
        with pytest.raises(Exception):
            settings.quiet = True  # type: ignore[misc]


class TestTomlSource:
    def test_loads_from_toml(self, tmp_path: Path) -> None:
        (tmp_path / "pocctl.toml").write_text(
            '[http]\ntimeout = 2.5\nverify_tls = false\n[runner]\ntarget = "http://lab:9000"\n'
        )
        settings = PocSettings.from_cli(search_root=tmp_path)
        assert settings.http.timeout == 2.5
        assert settings.http.verify_tls is False
        assert settings.http.follow_redirects is True  # default preserved
        assert settings.runner.target == "http://lab:9000"
        assert settings.config_path == tmp_path / "pocctl.toml"

    def test_empty_toml_uses_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "pocctl.toml").write_text("")
        settings = PocSettings.from_cli(search_root=tmp_path)
        assert settings.http.timeout == 5.0

    def test_explicit_config_path(self, tmp_path: Path) -> None:
        custom = tmp_path / "custom" / "my.toml"
        custom.parent.mkdir(parents=True)
        custom.write_text('[runner]\ntarget = "http://custom"\n')
        settings = PocSettings.from_cli(config_path=str(custom))
        assert settings.runner.target == "http://custom"
        assert settings.config_path == custom

    def test_invalid_toml_raises_click_exception(self, tmp_path: Path) -> None:
        (tmp_path / "pocctl.toml").write_text("[http\n")
        with pytest.raises(click.ClickException, match="Invalid TOML"):
            PocSettings.from_cli(search_root=tmp_path)


class TestPriority:
    def test_cli_flags_override(self) -> None:
        settings = PocSettings.from_cli(json_output=True, quiet=True, verbose=True)
        assert settings.json_output is True
        assert settings.quiet is True
        assert settings.verbose is True

    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "pocctl.toml").write_text("[http]\ntimeout = 2.5\n")
        monkeypatch.setenv("POCCTL_HTTP__TIMEOUT", "9")
        settings = PocSettings.from_cli(search_root=tmp_path)
        assert settings.http.timeout == 9.0

    def test_cli_flags_override_toml(self, tmp_path: Path) -> None:
        (tmp_path / "pocctl.toml").write_text("verbose = true\n")
        settings = PocSettings.from_cli(search_root=tmp_path, verbose=False)
        assert settings.verbose is False
