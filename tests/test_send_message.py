import os
import threading

import pytest

from conftest import StubRunner

import ai_session_manager.session.store as store_module
from ai_session_manager.providers.completion import CompletionFailedError, CompletionTimeoutError
from ai_session_manager.session import (
    ConnectionParams,
    LockTimeoutError,
    SessionNotFoundError,
    SessionService,
)


def _pairs(context: str):
    lines = context.splitlines()
    return [line for line in lines if line.startswith("User: ")]


def test_first_turn_sends_message_verbatim(service, runner):
    service.create_session("r1", system_prompt="be brief", connection={"project": "p1"})

    reply = service.send_message("r1", "hi")

    assert reply.session == "r1"
    assert reply.response == "hello"
    assert reply.message_index == 1
    assert reply.timestamp.endswith("Z")
    call = runner.calls[0]
    assert call["prompt"] == "hi"
    assert call["system_prompt"] == "be brief"
    assert call["connection"] == ConnectionParams("p1", "prd")
    assert call["timeout"] == 120.0


def test_turns_accumulate_in_order(service, runner):
    service.create_session("chat")

    for index in range(1, 4):
        reply = service.send_message("chat", f"message {index}", timeout=5)
        assert reply.message_index == index

    assert service.store.get("chat").message_count == 3
    context = service.store.read_context("chat")
    assert _pairs(context) == ["User: message 1", "User: message 2", "User: message 3"]
    assert context.count("Assistant: hello") == 3
    assert runner.calls[1]["prompt"].startswith("Conversation history:\nStarting new conversation.\nUser: message 1")
    assert runner.calls[2]["prompt"].endswith("\n\n---\n\nNew message: message 3")
    assert runner.calls[0]["timeout"] == 5


def test_failed_completion_leaves_session_untouched(settings):
    runner = StubRunner(lambda prompt: "rate limited", exit_code=2)
    service = SessionService.from_settings(settings, runner)
    created = service.create_session("chat")

    with pytest.raises(CompletionFailedError) as excinfo:
        service.send_message("chat", "hi")

    assert excinfo.value.exit_code == 2
    assert excinfo.value.data == {"exit_code": 2, "output": "rate limited"}
    session = service.store.get("chat")
    assert session.message_count == 0
    assert session.last_active == created.last_active
    assert service.store.read_context("chat") == ""
    assert not service.locks.is_locked("chat")


def test_timeout_leaves_session_untouched(settings):
    runner = StubRunner(error=CompletionTimeoutError(1))
    service = SessionService.from_settings(settings, runner)
    service.create_session("chat")

    with pytest.raises(CompletionTimeoutError, match="Execution timeout after 1s"):
        service.send_message("chat", "hi", timeout=1)

    assert service.store.get("chat").message_count == 0
    assert service.store.read_context("chat") == ""
    assert not service.locks.lock_path("chat").exists()


def test_missing_session_never_reaches_runner(service, runner):
    with pytest.raises(SessionNotFoundError):
        service.send_message("ghost", "hi")
    assert runner.calls == []


def test_lock_timeout_mutates_nothing(service, runner):
    service.create_session("busy")
    service.locks.acquire("busy")
    try:
        with pytest.raises(LockTimeoutError):
            service.send_message("busy", "hi", lock_timeout=0.1)
    finally:
        service.locks.release("busy")

    assert runner.calls == []
    assert service.store.get("busy").message_count == 0


def test_concurrent_calls_on_one_session_do_not_interleave(settings):
    active = {"now": 0, "peak": 0}
    guard = threading.Lock()

    def reply(prompt):
        with guard:
            active["now"] += 1
            active["peak"] = max(active["peak"], active["now"])
        threading.Event().wait(0.05)
        with guard:
            active["now"] -= 1
        return "ok"

    service = SessionService.from_settings(settings, StubRunner(reply))
    service.create_session("shared")
    errors = []

    def worker(index):
        try:
            service.send_message("shared", f"msg {index}", lock_timeout=10)
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(index,)) for index in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert active["peak"] == 1
    assert service.store.get("shared").message_count == 4
    assert sorted(_pairs(service.store.read_context("shared"))) == [f"User: msg {i}" for i in range(4)]


def test_different_sessions_run_in_parallel(settings):
    barrier = threading.Barrier(2, timeout=5)

    def reply(prompt):
        # Both turns must be inside the runner at once for the barrier to open.
        barrier.wait()
        return "ok"

    service = SessionService.from_settings(settings, StubRunner(reply))
    service.create_session("left")
    service.create_session("right")
    errors = []

    def worker(name):
        try:
            service.send_message(name, "hi", lock_timeout=0.5)
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(name,)) for name in ("left", "right")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert service.store.get("left").message_count == 1
    assert service.store.get("right").message_count == 1


def test_reset_clears_history_but_keeps_identity(service):
    created = service.create_session("chat", role="debugger")
    service.send_message("chat", "hi")

    reset = service.reset_session("chat")

    assert reset.message_count == 0
    assert reset.created_at == created.created_at
    assert service.store.read_context("chat") == ""
    assert service.get_status("chat")["context_preview"] is None


def test_delete_waits_for_the_session_lock(service):
    service.create_session("chat")
    service.locks.acquire("chat")
    try:
        with pytest.raises(LockTimeoutError):
            service.delete_session("chat", lock_timeout=0.1)
        assert service.store.exists("chat")
    finally:
        service.locks.release("chat")

    service.delete_session("chat")
    assert not service.store.exists("chat")
    with pytest.raises(SessionNotFoundError):
        service.get_status("chat")


def test_status_reports_lock_and_context(service):
    service.create_session("chat")
    service.send_message("chat", "hi")

    status = service.get_status("chat", include_context=True)

    assert status["locked"] is False
    assert status["session"]["message_count"] == 1
    assert "User: hi" in status["context_preview"]
    assert status["context"].endswith("Assistant: hello\n\n")
    assert service.session_counts() == {"total": 1, "active": 0, "idle": 1}


def test_interrupted_commit_leaves_no_partial_turn(service, runner, monkeypatch):
    service.create_session("r1")
    real_replace = os.replace
    calls = []

    def flaky_replace(src, dst):
        calls.append(dst)
        if len(calls) == 2:
            raise OSError("device busy")
        return real_replace(src, dst)

    monkeypatch.setattr(store_module.os, "replace", flaky_replace)

    with pytest.raises(OSError, match="device busy"):
        service.send_message("r1", "hi")

    monkeypatch.undo()
    assert len(runner.calls) == 1
    assert service.store.get("r1").message_count == 0
    assert service.store.read_context("r1") == ""
    assert not service.locks.is_locked("r1")
    assert sorted(p.name for p in (service.store.root / "r1").iterdir()) == ["context.txt", "metadata.json"]

    reply = service.send_message("r1", "hi")
    assert reply.message_index == 1
