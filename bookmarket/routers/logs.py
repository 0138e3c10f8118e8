# bookmarket/routers/logs.py
from fastapi import APIRouter, Depends, Query

from .. import logs
from ..admin.security import require_admin_key

router = APIRouter(tags=["logs"])

search_log = logs.get_logger("search")


@router.get("/api/logs/normal")
def normal_logs(max_lines: int = Query(100, ge=1, le=5000), _=Depends(require_admin_key)):
    return {"ok": True, "items": logs.read_log(logs.NORMAL, max_lines)}


@router.get("/api/logs/critical")
def critical_logs(max_lines: int = Query(100, ge=1, le=5000), _=Depends(require_admin_key)):
    return {"ok": True, "items": logs.read_log(logs.CRITICAL, max_lines)}


@router.get("/api/logs/summary")
def summary(_=Depends(require_admin_key)):
    counts = logs.log_counts()
    return {
        "ok": True,
        "normal_count": counts[logs.NORMAL],
        "critical_count": counts[logs.CRITICAL],
        "latest_critical": logs.read_log(logs.CRITICAL, 5),
    }


@router.post("/api/logs/clear")
def clear(_=Depends(require_admin_key)):
    logs.clear_logs()
    return {"ok": True, "message": "Logs cleared."}


@router.post("/api/search/log")
def log_search(payload: dict):
    term = str(payload.get("search_term") or "").strip()
    if not term:
        raise ValueError("search_term is required.")
    search_log.info("user_id=%s term=%s", payload.get("user_id"), term[:200])
    return {"ok": True}
