import json
from unittest.mock import MagicMock

import pytest
import requests

from larder.modules.recipes.openrouter_client import (
    OpenRouterAuthError, OpenRouterClient, OpenRouterClientError, OpenRouterNetworkError,
    OpenRouterParseError, OpenRouterRateLimitError, OpenRouterServerError, sanitize_content
)


def make_response(status=200, payload=None, text=None, headers=None):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.headers = headers or {}
    response.text = text if text is not None else json.dumps(payload)
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


def completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return OpenRouterClient(api_key="sk-test", default_model="test/model", session=session)


def test_requires_api_key_and_https():
    with pytest.raises(ValueError):
        OpenRouterClient(api_key=" ")
    with pytest.raises(ValueError):
        OpenRouterClient(api_key="sk-test", base_url="http://openrouter.example.com")


def test_sanitize_content_strips_markup():
    assert sanitize_content("<b>pasta</b> javascript:alert(1) ") == "pasta alert(1)"


def test_chat_completion_posts_model_params_and_sanitized_messages(client, session):
    session.post.return_value = make_response(payload=completion("hi"))

    client.chat_completion(
        [{"role": "system", "content": "<sys>"}, {"role": "user", "content": "<i>soup</i>"}],
        response_format={"type": "json_object"},
    )

    args, kwargs = session.post.call_args
    assert args[0] == "https://openrouter.ai/api/v1/chat/completions"
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["timeout"] == 30.0
    body = kwargs["json"]
    assert body["model"] == "test/model"
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 1024
    assert body["response_format"] == {"type": "json_object"}
    assert body["messages"][0]["content"] == "<sys>"
    assert body["messages"][1]["content"] == "soup"


def test_generate_json_decodes_message_content(client, session):
    session.post.return_value = make_response(payload=completion(json.dumps({"title": "Soup"})))

    assert client.generate_json([{"role": "user", "content": "soup"}], {"type": "json_object"}) == {"title": "Soup"}


@pytest.mark.parametrize("status, error_class", [
    (401, OpenRouterAuthError),
    (400, OpenRouterClientError),
    (502, OpenRouterServerError),
])
def test_http_errors_map_to_typed_errors(client, session, status, error_class):
    session.post.return_value = make_response(status=status, payload={"error": {"message": "nope"}})

    with pytest.raises(error_class):
        client.chat_completion([{"role": "user", "content": "soup"}])


def test_rate_limit_carries_reset_time(client, session):
    session.post.return_value = make_response(
        status=429, payload={"error": "slow down"}, headers={"X-Ratelimit-Reset": "1700000000"}
    )

    with pytest.raises(OpenRouterRateLimitError) as excinfo:
        client.chat_completion([{"role": "user", "content": "soup"}])

    assert excinfo.value.reset_at == 1700000000
    assert excinfo.value.code == "AI_RATE_LIMITED"


def test_timeout_is_network_error(client, session):
    session.post.side_effect = requests.Timeout("slow")

    with pytest.raises(OpenRouterNetworkError):
        client.chat_completion([{"role": "user", "content": "soup"}])


def test_connection_failure_is_network_error(client, session):
    session.post.side_effect = requests.ConnectionError("refused")

    with pytest.raises(OpenRouterNetworkError):
        client.chat_completion([{"role": "user", "content": "soup"}])


def test_non_json_content_is_parse_error(client, session):
    session.post.return_value = make_response(payload=completion("not json at all"))

    with pytest.raises(OpenRouterParseError) as excinfo:
        client.generate_json([{"role": "user", "content": "soup"}], {"type": "json_object"})

    assert excinfo.value.raw_response == "not json at all"


def test_missing_choices_is_parse_error(client, session):
    session.post.return_value = make_response(payload={"choices": []})

    with pytest.raises(OpenRouterParseError):
        client.chat_completion([{"role": "user", "content": "soup"}])


def test_json_array_content_is_parse_error(client, session):
    session.post.return_value = make_response(payload=completion("[1, 2]"))

    with pytest.raises(OpenRouterParseError):
        client.generate_json([{"role": "user", "content": "soup"}], {"type": "json_object"})


@pytest.mark.parametrize("payload", [[{"choices": []}], "ok"])
def test_non_object_body_is_parse_error(client, session, payload):
    session.post.return_value = make_response(payload=payload)

    with pytest.raises(OpenRouterParseError):
        client.chat_completion([{"role": "user", "content": "soup"}])


def test_malformed_choice_is_parse_error(client, session):
    session.post.return_value = make_response(payload={"choices": ["plain text"]})

    with pytest.raises(OpenRouterParseError):
        client.generate_json([{"role": "user", "content": "soup"}], {"type": "json_object"})
