import json

import pytest

from conftest import StubRunner

from ai_session_manager.core.utils.logger import get_correlation_id
from ai_session_manager.providers.completion import CompletionTimeoutError
from ai_session_manager.rpc import MethodDispatcher
from ai_session_manager.session import SessionService
from ai_session_manager.system import SystemStatusProvider


def _dispatcher(settings, runner):
    service = SessionService.from_settings(settings, runner)
    return MethodDispatcher(service, SystemStatusProvider(settings, service))


def test_create_send_status_scenario(rpc):
    created = rpc("create_session", {"name": "r1"})
    assert created["result"]["session"]["message_count"] == 0
    assert "system_prompt" not in created["result"]["session"]

    sent = rpc("send_message", {"session": "r1", "message": "hi"}, request_id=2)
    assert sent["id"] == 2
    assert sent["result"]["message_index"] == 1
    assert sent["result"]["response"] == "hello"

    status = rpc("get_status", {"name": "r1"}, request_id=3)["result"]
    assert status["session"]["message_count"] == 1
    assert "User: hi" in status["context_preview"]
    assert "Assistant: hello" in status["context_preview"]
    assert status["locked"] is False
    assert "context" not in status


def test_unknown_method(rpc):
    response = rpc("explode", request_id="m")

    assert response["id"] == "m"
    assert response["error"] == {"code": -32601, "message": "Method not found: explode"}


def test_parse_error_answers_with_null_id(dispatcher):
    response = json.loads(dispatcher.handle("{oops"))

    assert response["id"] is None
    assert response["error"]["code"] == -32700


def test_invalid_request_echoes_recovered_id(dispatcher):
    response = json.loads(dispatcher.handle('{"jsonrpc": "1.0", "method": "list_sessions", "id": 9}'))

    assert response["id"] == 9
    assert response["error"]["code"] == -32600


@pytest.mark.parametrize(
    "method, params, field",
    [
        ("create_session", {}, "name"),
        ("create_session", {"name": ""}, "name"),
        ("send_message", {"session": "r1"}, "message"),
        ("send_message", {"session": "r1", "message": ""}, "message"),
        ("broadcast_message", {"message": "hi"}, "sessions"),
    ],
)
def test_missing_required_parameters(rpc, method, params, field):
    error = rpc(method, params)["error"]

    assert error["code"] == -32602
    assert error["message"] == f"Missing required parameter: {field}"
    assert error["data"][0]["loc"] == field


def test_malformed_parameters_are_invalid_params(rpc, dispatcher):
    assert rpc("broadcast_message", {"sessions": [], "message": "hi"})["error"]["code"] == -32602
    assert rpc("send_message", {"session": "r1", "message": "hi", "timeout": 0})["error"]["code"] == -32602
    raw = '{"jsonrpc": "2.0", "method": "list_sessions", "params": [1, 2], "id": 1}'
    assert json.loads(dispatcher.handle(raw))["error"]["code"] == -32602


def test_domain_errors_map_to_codes(rpc):
    rpc("create_session", {"name": "r1"})

    assert rpc("create_session", {"name": "r1"})["error"] == {"code": -32001, "message": "Session already exists: r1"}
    assert rpc("get_status", {"name": "ghost"})["error"] == {"code": -32000, "message": "Session not found: ghost"}
    invalid = rpc("create_session", {"name": "bad name"})["error"]
    assert invalid["code"] == -32003
    assert invalid["message"].startswith("Invalid session name")
    assert rpc("create_session", {"name": "p", "preset": "nope"})["error"]["code"] == -32602


@pytest.mark.parametrize(
    "method, params",
    [
        ("send_message", {"session": "../etc", "message": "x"}),
        ("delete_session", {"name": "../etc"}),
        ("get_status", {"name": "no such"}),
        ("reset_session", {"name": "a/b"}),
    ],
)
def test_invalid_names_outside_create_are_not_found(rpc, method, params):
    error = rpc(method, params)["error"]

    assert error["code"] == -32000
    assert error["message"].startswith("Session not found: ")


def test_lock_timeout_maps_to_32002(rpc, service):
    rpc("create_session", {"name": "busy"})
    service.locks.acquire("busy")
    try:
        error = rpc("send_message", {"session": "busy", "message": "hi", "lockTimeout": 0.05})["error"]
    finally:
        service.locks.release("busy")

    assert error == {"code": -32002, "message": "Lock timeout: failed to acquire lock for session busy"}


def test_execution_failures_map_to_32004(settings):
    failing = _dispatcher(settings, StubRunner(lambda prompt: "boom", exit_code=3))
    failing.service.create_session("f")
    response = json.loads(
        failing.handle('{"jsonrpc": "2.0", "method": "send_message", "params": {"session": "f", "message": "x"}, "id": 1}')
    )
    assert response["error"]["code"] == -32004
    assert response["error"]["data"] == {"exit_code": 3, "output": "boom"}

    slow = _dispatcher(settings, StubRunner(error=CompletionTimeoutError(2.5)))
    response = json.loads(
        slow.handle('{"jsonrpc": "2.0", "method": "send_message", "params": {"session": "f", "message": "x"}, "id": 2}')
    )
    assert response["error"]["code"] == -32004
    assert response["error"]["message"] == "Execution timeout after 2.5s"


def test_unexpected_exceptions_become_internal_errors(settings):
    broken = _dispatcher(settings, StubRunner(error=KeyError("kaput")))
    broken.service.create_session("k")

    response = json.loads(
        broken.handle('{"jsonrpc": "2.0", "method": "send_message", "params": {"session": "k", "message": "x"}, "id": 5}')
    )

    assert response["id"] == 5
    assert response["error"]["code"] == -32603
    assert response["error"]["message"].startswith("Internal error")
    assert not broken.service.locks.lock_path("k").exists()


def test_create_session_accepts_nested_and_camel_case_fields(rpc):
    result = rpc(
        "create_session",
        {
            "name": "w1",
            "systemPrompt": "terse",
            "config": {"project": "proj"},
            "metadata": {"tags": ["ops"], "workspace": "/srv/w1"},
            "tags": ["first"],
        },
    )["result"]["session"]

    assert result["config"] == {"project": "proj", "config": "prd"}
    assert result["metadata"] == {"tags": ["first", "ops"], "workspace": "/srv/w1"}

    status = rpc("get_status", {"name": "w1", "includeContext": True})["result"]
    assert status["session"]["system_prompt"] == "terse"
    assert status["context"] == ""
    assert status["context_preview"] is None


def test_list_reset_delete_round(rpc):
    rpc("create_session", {"name": "a", "tags": ["x"]})
    rpc("create_session", {"name": "b"})
    rpc("send_message", {"session": "b", "message": "hi"})

    listed = rpc("list_sessions")["result"]
    assert listed["total"] == 2
    assert [s["name"] for s in listed["sessions"]] == ["a", "b"]
    assert rpc("list_sessions", {"tag": "x"})["result"]["total"] == 1
    assert rpc("list_sessions", {"minMessages": 1})["result"]["sessions"][0]["name"] == "b"

    assert rpc("reset_session", {"name": "b"})["result"] == {"reset": True, "name": "b", "message_count": 0}
    assert rpc("delete_session", {"name": "a"})["result"] == {"deleted": True, "name": "a"}
    assert rpc("delete_session", {"name": "a"})["error"]["code"] == -32000


def test_broadcast_through_the_wire(rpc):
    rpc("create_session", {"name": "one"})

    result = rpc("broadcast_message", {"sessions": ["one", "two"], "message": "ping"})["result"]

    assert result["summary"] == {"total": 2, "successful": 1, "failed": 1}
    assert result["results"][1]["error"] == "Session not found"


def test_system_status_shape(rpc):
    result = rpc("get_system_status")["result"]

    assert set(result) == {"system", "sessions", "resources", "backend"}
    assert result["backend"]["api_reachable"] is None
    assert len(result["system"]["load_average"]) == 3


def test_correlation_id_follows_request_id(rpc):
    rpc("list_sessions", request_id="corr-7")

    assert get_correlation_id() == "corr-7"
