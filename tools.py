import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

ERROR_FILE = "error.txt"
READ_PREVIEW_CHARS = 100

TOOL_SPECS = [
    ("create_file", "file_path, content", "Create new files"),
    ("read_file", "file_path", "Read existing files"),
    ("update_file", "file_path, content", "Update existing files"),
    ("list_files", "", "List all files"),
]


class DecodeError(Exception):
    """Model output did not contain a parseable tool-call array."""


class ExecutionError(Exception):
    """A single tool invocation could not be carried out."""


class Project(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    files: Dict[str, str] = Field(default_factory=dict)
    active_file: Optional[str] = Field(default=None, alias="activeFile")

    def snapshot(self) -> Dict[str, Any]:
        return {"files": dict(self.files), "activeFile": self.active_file}


class ToolInvocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool: str
    params: Dict[str, Any] = Field(default_factory=dict)


def _extract_fenced(text: str) -> str:
    if "```json" in text:
        return text.split("```json", 1)[1].split("```", 1)[0].strip()
    if "```" in text:
        return text.split("```", 2)[1].strip()
    return text


def _json_span(text: str) -> str:
    starts = [i for i in (text.find("["), text.find("{")) if i != -1]
    if not starts:
        raise DecodeError("No JSON found")
    start = min(starts)
    # one counter for both bracket families; "[1}" closes like "[1]"
    depth = 0
    end = len(text)
    for i in range(start, len(text)):
        ch = text[i]
        if ch in "[{":
            depth += 1
        elif ch in "]}":
            depth -= 1
        if depth == 0:
            end = i + 1
            break
    return text[start:end]


def decode_tool_calls(text: str) -> List[ToolInvocation]:
    """Pull the JSON array of tool calls out of raw model output.

    Prose around the array and markdown fences are tolerated. Anything that
    does not yield an array of objects raises DecodeError.
    """
    candidate = _json_span(_extract_fenced((text or "").strip()))
    try:
        data = json.loads(candidate)
    except (ValueError, RecursionError) as e:
        raise DecodeError(f"Invalid JSON: {e}") from e
    if not isinstance(data, list):
        raise DecodeError(f"Expected a JSON array of tool calls, got {type(data).__name__}")

    calls: List[ToolInvocation] = []
    for n, item in enumerate(data):
        if not isinstance(item, dict):
            raise DecodeError(f"Tool call #{n + 1} is not an object")
        tool = item.get("tool")
        params = item.get("params")
        calls.append(ToolInvocation(
            tool=tool if isinstance(tool, str) else "",
            params=params if isinstance(params, dict) else {},
        ))
    return calls


def fallback_tool_calls(error: Exception) -> List[ToolInvocation]:
    return [ToolInvocation(tool="create_file", params={"file_path": ERROR_FILE, "content": f"Error: {error}"})]


def _param(params: Dict[str, Any], name: str) -> str:
    if name not in params:
        raise ExecutionError(f"missing parameter '{name}'")
    value = params[name]
    if not isinstance(value, str):
        raise ExecutionError(f"parameter '{name}' must be a string")
    return value


def tool_create_file(project: Project, file_path: str, content: str) -> str:
    project.files[file_path] = content
    project.active_file = file_path
    return f"Created {file_path}"


def tool_read_file(project: Project, file_path: str) -> str:
    if file_path not in project.files:
        return f"Read {file_path}: File not found"
    content = project.files[file_path]
    if len(content) > READ_PREVIEW_CHARS:
        content = content[:READ_PREVIEW_CHARS] + "..."
    return f"Read {file_path}: {content}"


def tool_update_file(project: Project, file_path: str, content: str) -> str:
    if file_path not in project.files:
        return f"File {file_path} not found"
    project.files[file_path] = content
    return f"Updated {file_path}"


def tool_list_files(project: Project) -> str:
    return "Files: " + ", ".join(project.files)


def run_tool(project: Project, call: ToolInvocation) -> str:
    p = call.params
    if call.tool == "create_file":
        return tool_create_file(project, _param(p, "file_path"), _param(p, "content"))
    if call.tool == "read_file":
        return tool_read_file(project, _param(p, "file_path"))
    if call.tool == "update_file":
        return tool_update_file(project, _param(p, "file_path"), _param(p, "content"))
    if call.tool == "list_files":
        return tool_list_files(project)
    return f"Unknown tool: {call.tool}"


def execute_tools(calls: List[ToolInvocation], project: Project) -> List[str]:
    """Apply calls to project in order; one result line per call.

    Mutations are applied as they go. A failing call is reported in its
    result line and does not stop the rest of the batch.
    """
    results: List[str] = []
    for call in calls:
        try:
            results.append(run_tool(project, call))
        except Exception as e:
            logger.warning("Tool %s failed: %s", call.tool, e)
            results.append(f"Error executing {call.tool}: {e}")
    return results
