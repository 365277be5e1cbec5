from types import SimpleNamespace

from threadline.util.error import human_readable_error, is_auth_error


def test_human_readable_error_rules() -> None:
    assert human_readable_error(None) == "Unknown error occurred"
    assert human_readable_error("plain") == "plain"
    assert human_readable_error(RuntimeError("broke")) == "broke"
    assert human_readable_error(RuntimeError()) == "RuntimeError"
    assert human_readable_error({"type": "rate_limit", "message": "slow down"}) == "rate_limit: slow down"
    assert human_readable_error({"message": "only message"}) == "only message"
    assert human_readable_error(SimpleNamespace(type="overloaded", message="busy")) == "overloaded: busy"
    assert human_readable_error({"code": 5}) == '{"code": 5}'
    assert human_readable_error({1, 2}) == "<set>"


def test_is_auth_error() -> None:
    assert is_auth_error("Incorrect API key provided")
    assert is_auth_error("PERMISSION_DENIED: project blocked")
    assert is_auth_error("request unauthenticated")
    assert not is_auth_error("context length exceeded")
    assert is_auth_error("custom credential failure", ["credential"])
