import asyncio
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from desktop_eyes.executor.dispatch import TOOL_SPECS, Dispatcher, build_dispatcher, dispatch_tool, error_payload
from desktop_eyes.executor.tools import DesktopTools
from desktop_eyes.logging_setup import setup_logging
from desktop_eyes.logging_utils import generate_request_id, log_event

setup_logging()
load_dotenv()


class ToolCallRequest(BaseModel):
    arguments: Dict[str, Any] = Field(default_factory=dict)


app = FastAPI(title="desktop-eyes")

_dispatcher: Optional[Dispatcher] = None


def set_tools(tools: Optional[DesktopTools]) -> None:
    """Swap the tool set served by the app (None rebuilds from the environment)."""
    global _dispatcher
    _dispatcher = build_dispatcher(tools) if tools is not None else None


def get_dispatcher() -> Dispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = build_dispatcher(DesktopTools.from_settings())
    return _dispatcher


@app.get("/")
async def root() -> dict:
    return {"status": "ok", "service": "desktop-eyes"}


@app.get("/api/tools")
async def list_tools() -> dict:
    return {
        "tools": [
            {
                "name": spec.name,
                "description": spec.description,
                "arguments": spec.arguments,
                "required": list(spec.required),
            }
            for spec in TOOL_SPECS
        ]
    }


@app.post("/api/tools/{name}")
async def call_tool(name: str, req: Optional[ToolCallRequest] = None) -> dict:
    if name not in {spec.name for spec in TOOL_SPECS}:
        raise HTTPException(status_code=404, detail=f"unknown tool: {name}")
    request_id = generate_request_id()
    arguments = req.arguments if req else {}
    try:
        dispatcher = get_dispatcher()
        result = await asyncio.to_thread(dispatch_tool, dispatcher, name, arguments, request_id)
    except Exception as exc:  # noqa: BLE001
        log_event("tool.internal_error", request_id, {"tool": name, "error": str(exc)})
        result = error_payload("internal_error", f"{type(exc).__name__}: {exc}")
    return {"request_id": request_id, **result}
