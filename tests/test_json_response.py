import pytest

from story_reviser.utils.json_response import parse_json_response


@pytest.mark.parametrize("text", [
    '{"mode": "full"}',
    '```json\n{"mode": "full"}\n```',
    '```\n{"mode": "full"}\n```',
    'Here you go: {"mode": "full"} Hope that helps.',
])
def test_parse_json_response(text):
    assert parse_json_response(text) == {"mode": "full"}


def test_parse_json_response_failure():
    with pytest.raises(ValueError):
        parse_json_response("No JSON here.")
