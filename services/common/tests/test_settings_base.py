"""
Tests for the lightweight settings base class.
"""

from typing import List, Optional

import pytest

from services.common.settings import (
    AliasChoices,
    BaseSettings,
    Field,
    SettingsConfigDict,
)


class ExampleSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, case_sensitive=False)

    NAME: str = Field(default="calendar", description="Name")
    TIMEOUT: float = Field(
        default=30.0,
        validation_alias=AliasChoices("EXAMPLE_TIMEOUT", "TIMEOUT"),
    )
    ENABLED: bool = Field(default=False)
    LIMIT: int = Field(default=250)
    SCOPES: Optional[List[str]] = Field(default=None)
    OPTIONAL_LIMIT: Optional[int] = Field(default=None)


class RequiredSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None)

    TOKEN: str = Field(..., description="Required")


class TestAliasChoices:
    """Test AliasChoices functionality."""

    def test_alias_choices_creation(self):
        """Test creating AliasChoices with various choices."""
        choices = AliasChoices("choice1", "choice2", "choice3")
        assert choices.choices == ["choice1", "choice2", "choice3"]

    def test_alias_choices_empty(self):
        """Test AliasChoices with no choices."""
        assert AliasChoices().choices == []


class TestBaseSettings:
    """Test resolution order and type conversion."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in (
            "NAME",
            "TIMEOUT",
            "EXAMPLE_TIMEOUT",
            "ENABLED",
            "LIMIT",
            "OPTIONAL_LIMIT",
            "TOKEN",
            "SCOPES",
        ):
            monkeypatch.delenv(name, raising=False)

    def test_defaults(self):
        """Test that defaults apply when nothing is configured."""
        settings = ExampleSettings()

        assert settings.NAME == "calendar"
        assert settings.TIMEOUT == 30.0
        assert settings.ENABLED is False
        assert settings.LIMIT == 250
        assert settings.OPTIONAL_LIMIT is None

    def test_environment_overrides_default(self, monkeypatch):
        """Test that environment variables are converted to the field type."""
        monkeypatch.setenv("ENABLED", "yes")
        monkeypatch.setenv("LIMIT", "10")
        monkeypatch.setenv("OPTIONAL_LIMIT", "5")
        monkeypatch.setenv("SCOPES", "calendars.read, calendars.write")

        settings = ExampleSettings()

        assert settings.ENABLED is True
        assert settings.LIMIT == 10
        assert settings.OPTIONAL_LIMIT == 5
        assert settings.SCOPES == ["calendars.read", "calendars.write"]

    def test_alias_takes_precedence_over_field_name(self, monkeypatch):
        """Test that the first matching alias wins."""
        monkeypatch.setenv("TIMEOUT", "10")
        monkeypatch.setenv("EXAMPLE_TIMEOUT", "2.5")

        assert ExampleSettings().TIMEOUT == 2.5

    def test_kwargs_override_environment(self, monkeypatch):
        """Test that explicit keyword arguments win over the environment."""
        monkeypatch.setenv("NAME", "from-env")

        assert ExampleSettings(NAME="explicit").NAME == "explicit"

    def test_required_field_missing(self):
        """Test that a missing required field raises."""
        with pytest.raises(ValueError, match="Required field 'TOKEN'"):
            RequiredSettings()

    def test_env_file(self, tmp_path, monkeypatch):
        """Test loading values from a .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text('# comment\nTOKEN="abc"\n')

        class FileSettings(RequiredSettings):
            model_config = SettingsConfigDict(env_file=str(env_file))

        assert FileSettings().TOKEN == "abc"

    def test_model_dump(self):
        """Test that model_dump returns resolved fields only."""
        dumped = RequiredSettings(TOKEN="t").model_dump()

        assert dumped == {"TOKEN": "t"}
