from fastapi import APIRouter, HTTPException, Request

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/database", summary="PostgreSQL connectivity probe")
async def ping_database(request: Request) -> dict[str, str]:
    pool_manager = getattr(request.app.state, "postgres", None)
    if pool_manager is None:
        raise HTTPException(status_code=503, detail="Database is not configured")
    try:
        healthy = await pool_manager.test_connection()
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"Database unavailable: {exc}") from exc
    if not healthy:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return {"status": "ok"}
