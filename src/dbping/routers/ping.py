from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter()

NO_CACHE = {"Cache-Control": "no-store"}


@router.get("/ping-dbs")
async def ping_dbs(request: Request):
    """Probe every configured database now and return the aggregate report."""
    payload = await request.app.state.facade.check_now()
    status_code = 500 if "error" in payload else 200
    return JSONResponse(payload, status_code=status_code, headers=NO_CACHE)
