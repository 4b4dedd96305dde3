# routes_root.py
"""
Root / basic endpoints (health, landing).
"""

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
def read_root():
    """
    Simple health check / landing endpoint.
    """
    return {"message": "My finance app is running"}
