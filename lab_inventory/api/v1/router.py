# lab_inventory/api/v1/router.py
from fastapi import APIRouter

from lab_inventory.api.v1.endpoints import inventory

api_router = APIRouter()

api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
