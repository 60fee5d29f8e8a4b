"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from backoffice.api.v1.endpoints import (auth, cart, hr, orders, payment,
                                         products, staff, system)

api_router = APIRouter()

# Auth (register, login, password reset, Google, profiles)
api_router.include_router(auth.router)

# Staff onboarding, resignations, leaves
api_router.include_router(staff.router)
api_router.include_router(hr.resignations_router)
api_router.include_router(hr.leaves_router)

# Catalog, cart, checkout, payments
api_router.include_router(products.router)
api_router.include_router(cart.router)
api_router.include_router(orders.router)
api_router.include_router(payment.router)

# Health, status
api_router.include_router(system.router)
