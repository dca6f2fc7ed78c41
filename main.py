import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, List

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field, ValidationError

import config
from gateway import CompletionGateway, ModelId
from session import Event, Session

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class SendMessageRequest(BaseModel):
    message: str


class SwitchModelRequest(BaseModel):
    model: str


class UpdateFileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    content: str


app = FastAPI(title="AI App Builder (Chat + Agent + Live Preview)")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/static", StaticFiles(directory=config.STATIC_DIR), name="static")
app.state.gateway = CompletionGateway()


@app.get("/")
def index():
    return FileResponse(os.path.join(config.STATIC_DIR, "index.html"))


@app.get("/favicon.ico")
def favicon():
    return Response(status_code=204)


@app.get("/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


def _frame(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data}, ensure_ascii=False)


async def dispatch(session: Session, event: str, data: Any) -> List[Event]:
    """Route one inbound event to the session; returns the events to send back."""
    if event == "sendMessage":
        req = SendMessageRequest(**(data or {}))
        return await session.handle_message(req.message)
    if event == "toggleAgent":
        return [("agentModeChanged", {"agentMode": session.toggle_agent()})]
    if event == "switchModel":
        req = SwitchModelRequest(model=data) if isinstance(data, str) else SwitchModelRequest(**(data or {}))
        try:
            model = session.switch_model(req.model)
        except ValueError:
            known = ", ".join(m.value for m in ModelId)
            return [("error", {
                "message": f"Unknown model: {req.model} (available: {known})",
                "model": req.model,
                "selectedModel": session.selected_model.value,
            })]
        return [("modelChanged", {"model": model})]
    if event == "updateFile":
        req = UpdateFileRequest(**(data or {}))
        return [("projectUpdate", session.update_file(req.file_name, req.content))]
    return [("error", {"message": f"Unknown event: {event}"})]


@app.websocket("/ws")
async def builder_socket(websocket: WebSocket):
    await websocket.accept()
    conn_id = uuid.uuid4().hex[:8]
    session = Session(gateway=websocket.app.state.gateway)
    logger.info("User connected: %s", conn_id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
                if not isinstance(msg, dict):
                    raise ValueError("frame must be a JSON object")
                replies = await dispatch(session, str(msg.get("event", "")), msg.get("data"))
            except (ValueError, TypeError, ValidationError) as e:
                logger.warning("Bad frame from %s: %s", conn_id, e)
                replies = [("error", {"message": f"Bad request: {e}"})]
            except Exception as e:
                logger.exception("Unhandled error for %s", conn_id)
                replies = [("aiResponse", {"type": "error", "message": f"Error: {e}"})]
            for name, payload in replies:
                await websocket.send_text(_frame(name, payload))
    except WebSocketDisconnect:
        logger.info("User disconnected: %s", conn_id)


if __name__ == "__main__":
    import uvicorn

    logger.info("AI App Builder running on http://localhost:%d", config.PORT)
    logger.info("Models available: %s", ", ".join(m.value for m in ModelId))
    uvicorn.run(app, host=config.HOST, port=config.PORT)
