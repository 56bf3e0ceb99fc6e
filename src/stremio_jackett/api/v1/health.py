from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(prefix="")


@router.get("", response_class=PlainTextResponse, summary="Liveness probe")
async def health():
    return "OK"
