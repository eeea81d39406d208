import pytest
from pydantic import ValidationError

from story_reviser.config import Config, RevisionConfig


def test_default_config(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    config = Config()
    assert config.revision.max_attempts == 3
    assert config.revision.history_limit == 20
    assert config.revision.diff_granularity == "line"
    assert config.gemini.api_key == ""


def test_api_key_from_environment(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "secret")
    assert Config().gemini.api_key == "secret"


def test_config_from_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("""
store:
  path: custom/generations.json
revision:
  max_attempts: 5
  diff_granularity: word
gemini:
  model: gemini-2.0-flash
""")

    config = Config.from_yaml(config_file)
    assert str(config.store.path) == "custom/generations.json"
    assert config.revision.max_attempts == 5
    assert config.revision.diff_granularity == "word"
    assert config.gemini.model == "gemini-2.0-flash"


def test_empty_yaml_gives_defaults(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")

    assert Config.from_yaml(config_file).revision.max_attempts == 3


@pytest.mark.parametrize("kwargs", [
    {"max_attempts": 0},
    {"diff_granularity": "character"},
    {"backoff_min": 5, "backoff_max": 1},
])
def test_config_validation(kwargs):
    with pytest.raises(ValidationError):
        RevisionConfig(**kwargs)


def test_config_to_yaml_leaves_out_api_key(tmp_path):
    config = Config(revision=RevisionConfig(context_radius=2))
    config.gemini.api_key = "secret"
    output_file = tmp_path / "output.yaml"

    config.to_yaml(output_file)

    assert "secret" not in output_file.read_text()
    assert Config.from_yaml(output_file).revision.context_radius == 2
