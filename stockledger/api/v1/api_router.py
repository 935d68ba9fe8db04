"""
Main API Router - Consolidates all module routes
"""

from fastapi import APIRouter
from stockledger.api.v1 import stock, admin, rrp

api_router = APIRouter()

# Stock ledger routes
api_router.include_router(stock.ledger.router, prefix="/stock", tags=["stock-ledger"])

# Receiving report routes
api_router.include_router(rrp.numbers.router, prefix="/rrp", tags=["rrp"])

# Admin routes
api_router.include_router(admin.rebuild.router, prefix="/admin", tags=["admin"])
