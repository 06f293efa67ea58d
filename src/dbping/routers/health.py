from fastapi import APIRouter

router = APIRouter()


@router.get("")
def health():
    """Process liveness only; databases are checked by /api/ping-dbs."""
    return {"status": "ok"}
