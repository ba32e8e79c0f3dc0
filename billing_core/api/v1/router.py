"""API V1 Router"""

from fastapi import APIRouter

# Import endpoint routers
from billing_core.api.v1.endpoints import debts, invoices, payments, settlements

# Create API v1 router
api_router = APIRouter()

# Include endpoint routers with prefixes and tags
api_router.include_router(invoices.router, prefix="/invoices", tags=["Invoicing"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
api_router.include_router(settlements.router, prefix="/settlements", tags=["Settlement Documents"])
api_router.include_router(debts.router, prefix="/debts", tags=["Debt Aging"])
