import json

import pytest

from conftest import FakeGateway
from gateway import ModelId, ProviderError
from session import Session, chat_prompt, tool_decision_prompt
from tools import Project


def test_new_session_defaults():
    session = Session(gateway=FakeGateway())
    assert session.agent_mode is False
    assert session.selected_model is ModelId.GEMINI
    assert session.project.files == {}
    assert session.project.active_file is None


def test_toggle_twice_returns_to_start():
    session = Session(gateway=FakeGateway())
    assert [session.toggle_agent(), session.toggle_agent()] == [True, False]
    assert session.agent_mode is False


def test_switch_model_echoes_id():
    session = Session(gateway=FakeGateway())
    assert session.switch_model("qwen") == "qwen"
    assert session.selected_model is ModelId.QWEN


def test_switch_model_unknown_keeps_previous():
    session = Session(gateway=FakeGateway())
    session.switch_model("mistral")
    with pytest.raises(ValueError):
        session.switch_model("gpt-4")
    assert session.selected_model is ModelId.MISTRAL


def test_update_file_sets_active():
    session = Session(gateway=FakeGateway())
    snap = session.update_file("index.html", "<p>edited</p>")
    assert snap == {"files": {"index.html": "<p>edited</p>"}, "activeFile": "index.html"}


def test_tool_prompt_lists_current_files():
    prompt = tool_decision_prompt("add a footer", Project(files={"index.html": "", "style.css": ""}))
    assert prompt.startswith("Current files: index.html, style.css\n")
    for tool in ("create_file(file_path, content)", "read_file(file_path)",
                 "update_file(file_path, content)", "list_files()"):
        assert tool in prompt
    assert prompt.endswith('User: "add a footer"')


def test_tool_prompt_without_files_has_no_context():
    assert not tool_decision_prompt("hi", Project()).startswith("Current files")


@pytest.mark.asyncio
async def test_chat_mode_relays_reply_verbatim():
    gw = FakeGateway("  Hello there!\n")
    session = Session(gateway=gw)
    events = await session.handle_message("hi")
    assert events == [("aiResponse", {"type": "chat", "message": "  Hello there!\n"})]
    assert gw.calls == [(chat_prompt("hi"), ModelId.GEMINI)]


@pytest.mark.asyncio
async def test_chat_mode_uses_selected_model():
    gw = FakeGateway("ok")
    session = Session(gateway=gw)
    session.switch_model("mistral")
    await session.handle_message("hi")
    assert gw.calls[0][1] is ModelId.MISTRAL


@pytest.mark.asyncio
async def test_chat_mode_provider_error_is_error_response(provider_down):
    gw = FakeGateway(provider_down, "back again")
    session = Session(gateway=gw)
    events = await session.handle_message("hi")
    assert events == [("aiResponse", {"type": "error", "message": f"Error: {provider_down}"})]
    # session still usable
    events = await session.handle_message("hi again")
    assert events[0][1]["type"] == "chat"


@pytest.mark.asyncio
async def test_agent_mode_creates_file():
    reply = json.dumps([{"tool": "create_file", "params": {"file_path": "index.html", "content": "<html></html>"}}])
    session = Session(gateway=FakeGateway(reply), agent_mode=True)
    events = await session.handle_message("make a page")

    assert session.project.files == {"index.html": "<html></html>"}
    assert session.project.active_file == "index.html"
    assert [name for name, _ in events] == ["projectUpdate", "aiResponse"]
    assert events[0][1] == {"files": {"index.html": "<html></html>"}, "activeFile": "index.html"}
    response = events[1][1]
    assert response["type"] == "tools"
    assert response["message"] == "Executed 1 tools"
    assert response["results"] == ["Created index.html"]
    assert response["tools"][0]["tool"] == "create_file"


@pytest.mark.asyncio
async def test_agent_mode_prose_without_json_falls_back():
    session = Session(gateway=FakeGateway("I would build a nice page for you."), agent_mode=True)
    events = await session.handle_message("make a page")
    response = events[-1][1]
    assert response["type"] == "tools"
    assert response["results"] == ["Created error.txt"]
    assert session.project.files == {"error.txt": "Error: No JSON found"}


@pytest.mark.asyncio
async def test_agent_mode_provider_error_falls_back():
    session = Session(gateway=FakeGateway(ProviderError("timeout")), agent_mode=True)
    events = await session.handle_message("make a page")
    assert events[-1][1]["type"] == "tools"
    assert session.project.files["error.txt"] == "Error: timeout"


@pytest.mark.asyncio
async def test_agent_mode_sees_previous_files():
    first = json.dumps([{"tool": "create_file", "params": {"file_path": "a.txt", "content": "hi"}}])
    second = json.dumps([{"tool": "read_file", "params": {"file_path": "b.txt"}}])
    gw = FakeGateway(first, second)
    session = Session(gateway=gw, agent_mode=True)
    await session.handle_message("one")
    events = await session.handle_message("two")

    assert gw.calls[1][0].startswith("Current files: a.txt\n")
    assert "not found" in events[-1][1]["results"][0]
    assert session.project.files == {"a.txt": "hi"}


@pytest.mark.asyncio
async def test_agent_mode_replaces_project_object():
    reply = json.dumps([{"tool": "list_files", "params": {}}])
    before = Project(files={"a.txt": "hi"})
    session = Session(gateway=FakeGateway(reply), project=before, agent_mode=True)
    events = await session.handle_message("list")
    assert session.project is not before
    assert session.project.files == before.files
    assert events[-1][1]["results"] == ["Files: a.txt"]


@pytest.mark.asyncio
async def test_agent_mode_deeply_nested_output_falls_back():
    session = Session(gateway=FakeGateway("[" * 100000 + "]" * 100000), agent_mode=True)
    events = await session.handle_message("x")
    assert events[-1][1]["type"] == "tools"
    assert events[-1][1]["results"] == ["Created error.txt"]
    assert session.project.files["error.txt"].startswith("Error: Invalid JSON")
