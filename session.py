import json
import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple

from gateway import ModelId, ProviderError
from tools import (
    ERROR_FILE,
    TOOL_SPECS,
    DecodeError,
    Project,
    ToolInvocation,
    decode_tool_calls,
    execute_tools,
    fallback_tool_calls,
)

logger = logging.getLogger(__name__)

Event = Tuple[str, Dict[str, Any]]

_EXAMPLE_SINGLE = [{"tool": "create_file", "params": {
    "file_path": "index.html",
    "content": "<!DOCTYPE html><html><head><title>App</title></head><body><h1>Hello</h1></body></html>",
}}]
_EXAMPLE_MULTI = [
    {"tool": "create_file", "params": {"file_path": "index.html", "content": "..."}},
    {"tool": "create_file", "params": {"file_path": "style.css", "content": "body{font-family:Arial;}"}},
]


class Completer(Protocol):
    async def complete(self, prompt: str, model: ModelId) -> str: ...


def chat_prompt(message: str) -> str:
    return f'You are a helpful AI assistant. Respond naturally to: "{message}"'


def tool_decision_prompt(message: str, project: Project) -> str:
    context = f"Current files: {', '.join(project.files)}\n" if project.files else ""
    tools = "\n".join(
        f"- {name}({args}) - {desc}" for name, args, desc in TOOL_SPECS
    )
    return (
        f"{context}You are an autonomous app builder. Available tools:\n"
        f"{tools}\n\n"
        "CRITICAL: Respond ONLY with valid JSON array. No explanations.\n\n"
        "Examples:\n"
        + json.dumps(_EXAMPLE_SINGLE) + "\n\n"
        + json.dumps(_EXAMPLE_MULTI) + "\n\n"
        f'User: "{message}"'
    )


class Session:
    """State for one client connection: its project, mode and model.

    Owned by the connection handler; nothing here is shared between
    connections. Outbound events are returned as (name, payload) pairs in the
    order they should be sent.
    """

    def __init__(self, gateway: Completer, project: Optional[Project] = None,
                 agent_mode: bool = False, selected_model: ModelId = ModelId.GEMINI) -> None:
        self.gateway = gateway
        self.project = project if project is not None else Project()
        self.agent_mode = agent_mode
        self.selected_model = selected_model

    def toggle_agent(self) -> bool:
        self.agent_mode = not self.agent_mode
        logger.info("Agent mode %s", "ON" if self.agent_mode else "OFF")
        return self.agent_mode

    def switch_model(self, model: str) -> str:
        self.selected_model = ModelId(model)
        logger.info("Model switched to %s", self.selected_model.value)
        return self.selected_model.value

    def update_file(self, file_name: str, content: str) -> Dict[str, Any]:
        self.project.files[file_name] = content
        self.project.active_file = file_name
        return self.project.snapshot()

    async def handle_message(self, message: str) -> List[Event]:
        if self.agent_mode:
            return await self._agent_reply(message)
        return [("aiResponse", await self._chat_reply(message))]

    async def _chat_reply(self, message: str) -> Dict[str, Any]:
        try:
            reply = await self.gateway.complete(chat_prompt(message), self.selected_model)
        except ProviderError as e:
            logger.error("Chat completion failed (%s): %s", self.selected_model.value, e)
            return {"type": "error", "message": f"Error: {e}"}
        return {"type": "chat", "message": reply}

    async def decide_tools(self, message: str) -> List[ToolInvocation]:
        prompt = tool_decision_prompt(message, self.project)
        try:
            raw = await self.gateway.complete(prompt, self.selected_model)
            return decode_tool_calls(raw)
        except (ProviderError, DecodeError) as e:
            logger.warning("Tool decision failed, writing %s instead: %s", ERROR_FILE, e)
            return fallback_tool_calls(e)

    async def _agent_reply(self, message: str) -> List[Event]:
        calls = await self.decide_tools(message)
        project = self.project.model_copy(deep=True)
        results = execute_tools(calls, project)
        self.project = project
        response = {
            "type": "tools",
            "message": f"Executed {len(results)} tools",
            "tools": [c.model_dump() for c in calls],
            "results": results,
        }
        return [("projectUpdate", self.project.snapshot()), ("aiResponse", response)]
