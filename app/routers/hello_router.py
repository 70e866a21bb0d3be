from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

GREETING = "hello wrold from landing page"

router = APIRouter(tags=["hello"])


@router.get("/", response_class=PlainTextResponse, response_description="greet ok")
@router.head("/", response_class=PlainTextResponse, include_in_schema=False)
async def handle_hello():
    """Landing page greeting"""
    return GREETING
