import pytest
from pydantic import field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from shared.validators import StringListEnvSettingsSource, parse_string_list


class TestParseStringList:
    def test_json_array_string(self):
        result = parse_string_list('["http://a.com","http://b.com"]')
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_separated_string(self):
        result = parse_string_list("http://a.com,http://b.com")
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_separated_with_whitespace(self):
        result = parse_string_list("http://a.com , http://b.com")
        assert result == ["http://a.com", "http://b.com"]

    def test_single_value(self):
        assert parse_string_list("http://a.com") == ["http://a.com"]

    def test_passthrough_list(self):
        origins = ["http://a.com", "http://b.com"]
        result = parse_string_list(origins)
        assert result == origins

    def test_empty_string_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("")

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError, match="Invalid JSON array"):
            parse_string_list("[not valid json")

    def test_json_mixed_types_array_raises(self):
        with pytest.raises(ValueError, match="must be an array of strings"):
            parse_string_list('["http://a.com", 123]')

    def test_json_empty_array_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list("[]")

    def test_empty_list_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list([])

    def test_comma_separated_skips_empty_segments(self):
        result = parse_string_list("http://a.com,,http://b.com,")
        assert result == ["http://a.com", "http://b.com"]

    def test_comma_only_raises(self):
        with pytest.raises(ValueError, match="must not be empty"):
            parse_string_list(",")


class _OriginSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TEST_VALIDATORS_")

    cors_origins: list[str] = ["http://localhost"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: str | list[str]) -> list[str]:
        return parse_string_list(value)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings)


class TestStringListEnvSettingsSource:
    def test_comma_separated_env_value(self, monkeypatch):
        monkeypatch.setenv("TEST_VALIDATORS_CORS_ORIGINS", "http://a.com,http://b.com")
        assert _OriginSettings().cors_origins == ["http://a.com", "http://b.com"]

    def test_json_env_value(self, monkeypatch):
        monkeypatch.setenv("TEST_VALIDATORS_CORS_ORIGINS", '["http://a.com"]')
        assert _OriginSettings().cors_origins == ["http://a.com"]

    def test_default_when_unset(self, monkeypatch):
        monkeypatch.delenv("TEST_VALIDATORS_CORS_ORIGINS", raising=False)
        assert _OriginSettings().cors_origins == ["http://localhost"]
