from fastapi import APIRouter


router = APIRouter()


@router.get("/")
async def root() -> dict[str, str]:
    """Return a basic service greeting."""

    return {"message": "GitHub activity dashboard"}


@router.get("/health/live")
def health_live() -> dict[str, str]:
    """Return liveness status for health checks."""

    return {"status": "ok"}
