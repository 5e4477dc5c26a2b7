"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from poultrymitra.app.api.v1.endpoints import auth, ledger, connections

router = APIRouter()

# Authentication endpoints
router.include_router(auth.router)

# Ledger endpoints
router.include_router(ledger.router)
router.include_router(ledger.admin_router)

# Farmer/dealer connection endpoints
router.include_router(connections.router)
