from fastapi import APIRouter

router = APIRouter()


@router.get("/")
def root():
    return {
        "name": "Performance Review Platform",
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
    }
