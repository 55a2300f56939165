"""st-narrative: HTTP API.

Starts runs in the background and exposes read endpoints to poll for their
results.

Flow:
    POST /runs
        → create pending RunRecord in store
        → start background task
        → return run_id immediately

    background task:
        → build the runtime from configuration
        → NarrativeRuntime.execute()
        → update record to status="complete" (or "failed")

    clients poll:
        GET /runs/latest  or  GET /runs/{run_id}

Run locally:
    uvicorn server:app --reload
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Literal

import uvicorn
from dotenv import load_dotenv
from fastapi import BackgroundTasks, FastAPI, HTTPException
from pydantic import BaseModel

load_dotenv()

from cli import build_runtime
from config import load_config
from core.runtime import NarrativeRuntime
from llm.factory import create_llm_client
from schemas.result import RunResult
from synthesis.llm_synthesizer import LLMSynthesizer
from utils.log import setup_logging

setup_logging(console=False)

logger = logging.getLogger(__name__)

app = FastAPI(title="st-narrative", version="0.1.0")


# ---------------------------------------------------------------------------
# Run store
# ---------------------------------------------------------------------------

class RunRecord(BaseModel):
    """A single pipeline run, as seen by API clients.

    status lifecycle:
        "pending"  → created when the run is requested
        "complete" → pipeline finished, result populated
        "failed"   → pipeline raised, error is set
    """
    run_id: str
    status: Literal["pending", "complete", "failed"]
    created_at: str
    result: RunResult | None = None
    error: str | None = None


# In-memory store: run_id → RunRecord. Lost on restart.
_store: dict[str, RunRecord] = {}
_latest_id: str | None = None


def _save(record: RunRecord) -> None:
    """Write a record to the store and update the latest pointer."""
    global _latest_id
    _store[record.run_id] = record
    _latest_id = record.run_id


def _default_runtime() -> NarrativeRuntime:
    config = load_config()
    return build_runtime(config, LLMSynthesizer(create_llm_client(config.llm)))


# Replaced in tests with a factory that wires stub fetchers and transport.
runtime_factory: Callable[[], NarrativeRuntime] = _default_runtime


# ---------------------------------------------------------------------------
# Background run task
# ---------------------------------------------------------------------------

async def _run_pipeline(run_id: str) -> None:
    """Run the pipeline and record the terminal state.

    Any exception marks the record status="failed" with the error text.
    """
    try:
        runtime = runtime_factory()
        result = await runtime.execute()
        _save(_store[run_id].model_copy(update={
            "status": "complete",
            "result": result.model_copy(update={"run_id": run_id}),
        }))
        logger.info(
            "Run %s complete. %d narratives, %d ideas.",
            run_id,
            len(result.narratives),
            len(result.ideas),
        )
    except Exception as exc:
        logger.error("Run %s failed: %s", run_id, exc)
        _save(_store[run_id].model_copy(update={"status": "failed", "error": str(exc)}))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"status": "ok", "version": "0.1.0"}


@app.post("/runs", status_code=202)
async def start_run(background_tasks: BackgroundTasks):
    """Create a pending run and start it in the background."""
    run_id = str(uuid.uuid4())
    _save(RunRecord(
        run_id=run_id,
        status="pending",
        created_at=datetime.now(timezone.utc).isoformat(),
    ))
    logger.info("Accepted run %s (pending).", run_id)
    background_tasks.add_task(_run_pipeline, run_id)
    return {"run_id": run_id, "status": "pending"}


@app.get("/runs/latest", response_model=RunRecord)
def get_latest_run():
    """Return the most recent run record. 404 if no run has been started."""
    if _latest_id is None or _latest_id not in _store:
        raise HTTPException(status_code=404, detail="No runs yet.")
    return _store[_latest_id]


@app.get("/runs/{run_id}", response_model=RunRecord)
def get_run(run_id: str):
    """Return a specific run record. 404 if the run_id is unknown."""
    if run_id not in _store:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found.")
    return _store[run_id]


if __name__ == "__main__":
    uvicorn.run("server:app", host="127.0.0.1", port=8000, reload=True)
