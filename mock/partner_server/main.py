from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from pathlib import Path
from typing import Dict, Optional
from pydantic import BaseModel
import json
import os
import uuid

app = FastAPI(title="Mock Partner Server", version="1.0.0")
# Support both local development and Docker
DATA_DIR = Path("/partner_stub") if os.path.exists("/partner_stub") else Path(__file__).resolve().parents[1] / "partner_stub"

# Amounts at or above this are declined, to exercise the failure path
DECLINE_THRESHOLD = 100000

_settled: Dict[str, dict] = {}


class SettlementBody(BaseModel):
    payment_id: str
    method: str
    amount: str


def _load(name: str) -> dict:
    return json.loads((DATA_DIR / name).read_text())


@app.get("/health")
def health(): return {"status": "ok"}

@app.get("/vehicles/{vehicle_id}")
def get_vehicle(vehicle_id: str):
    vehicles = _load("vehicles.json")
    if vehicle_id not in vehicles:
        raise HTTPException(status_code=404, detail="vehicle not found")
    return JSONResponse(content=vehicles[vehicle_id])

@app.get("/users/{user_id}")
def get_user(user_id: str):
    users = _load("users.json")
    if user_id not in users:
        raise HTTPException(status_code=404, detail="user not found")
    return JSONResponse(content=users[user_id])

@app.post("/settlements")
def settle(body: SettlementBody, idempotency_key: Optional[str] = Header(None)):
    key = idempotency_key or body.payment_id
    if key in _settled:
        return _settled[key]
    if float(body.amount) >= DECLINE_THRESHOLD:
        result = {"status": "declined", "reason": "limit exceeded"}
    else:
        result = {"status": "approved", "reference": f"{body.method}-{uuid.uuid4().hex[:12].upper()}"}
    _settled[key] = result
    return result
