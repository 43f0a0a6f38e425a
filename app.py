"""
n8n Phase Stitcher — FastAPI Application

Endpoints:
  GET  /health            — liveness probe
  POST /stitch            — schema + phase outputs → unified n8n workflow
  POST /interfaces/check  — advisory interface compatibility check for a schema

HTTP status codes:
  200 — success
  400 — malformed schema / invalid stitch settings
  422 — request body invalid, or stitch aborted on a fatal validation error
  500 — internal pipeline error
"""

import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from tools.interface_validator import validate_interfaces
from tools.logger import log
from tools.phase_stitcher import export_workflow, stitch_phases_async
from tools.stitch_config import get_stitch_config
from tools.stitch_errors import StitchError

# --- Stitch defaults resolved once at startup ---
_config = {}


@asynccontextmanager
async def lifespan(_app: FastAPI):
    global _config
    try:
        _config = get_stitch_config()
    except ValueError as e:
        log("startup.config_invalid", level="error", error=str(e))
        raise
    log("startup.ready", phase_spacing=_config["phase_spacing"], phase_match=_config["phase_match"])
    yield


app = FastAPI(
    title="n8n Phase Stitcher",
    version="1.0.0",
    lifespan=lifespan,
)


# ─────────────────────────────────────────
# Request / Response Models
# ─────────────────────────────────────────

class StitchRequest(BaseModel):
    """Schema plus one output per phase declared in schema.node_registry."""
    model_config = ConfigDict(populate_by_name=True)

    schema_doc: dict = Field(alias="schema")   # BaseModel reserves "schema"
    phase_outputs: dict
    phase_match: Optional[str] = None          # "tag" | "substring"
    phase_spacing: Optional[int] = None


class InterfaceCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schema_doc: dict = Field(alias="schema")


# ─────────────────────────────────────────
# Endpoints
# ─────────────────────────────────────────

@app.get("/health")
def health():
    return {"ok": True}


@app.post("/stitch")
async def stitch(request: StitchRequest):
    """
    Stitch phase outputs into one importable n8n workflow.

    Example:
      {
        "schema": {"metadata": {"name": "Leads"},
                   "node_registry": {"ingest": [{"id": "a"}], "transform": [{"id": "b"}]},
                   "connections": [{"source": {"node": "a"}, "target": {"node": "b"}}]},
        "phase_outputs": {"ingest": {"nodes": [...]}, "transform": {"nodes": [...]}}
      }
    """
    phase_match = request.phase_match or _config.get("phase_match")
    phase_spacing = request.phase_spacing
    if phase_spacing is None:
        phase_spacing = _config.get("phase_spacing")

    try:
        result = await stitch_phases_async(
            request.schema_doc,
            request.phase_outputs,
            phase_spacing=phase_spacing,
            phase_match=phase_match,
        )
    except StitchError as e:
        return JSONResponse(status_code=422, content=e.to_dict())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        log("api.stitch_error", level="error", error=str(e))
        raise HTTPException(status_code=500, detail=f"Stitch failed: {str(e)}")

    workflow = export_workflow(
        result["workflow"],
        version_id=str(uuid.uuid4()),
        workflow_id=str(uuid.uuid4()),
        instance_id=str(uuid.uuid4()),
    )

    return {
        "workflow": workflow,
        "diagnostics": result["diagnostics"],
        "dropped_connections": result["dropped_connections"],
        "node_count": result["node_count"],
        "connection_count": result["connection_count"],
    }


@app.post("/interfaces/check")
def interfaces_check(request: InterfaceCheckRequest):
    """Advisory only: reports InterfaceMismatch diagnostics, never fails the schema."""
    if not isinstance(request.schema_doc.get("node_registry"), dict):
        raise HTTPException(status_code=400, detail="Schema missing 'node_registry' mapping")

    diagnostics = validate_interfaces(request.schema_doc)
    return {
        "compatible": len(diagnostics) == 0,
        "diagnostics": diagnostics,
    }
