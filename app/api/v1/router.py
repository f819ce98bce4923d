from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Access Control
    auth,
    sub_admins,
    # Orders
    orders,
    admin_orders,
    # Checkout
    coupons,
    invoices,
    # Storefront content
    filters,
    banners,
    # Shopper features
    tbyb,
    # Demo data
    fake_data,
)


api_router = APIRouter(prefix="/api/v1")

# ==================== Access Control ====================
api_router.include_router(auth.router)
api_router.include_router(sub_admins.router)

# ==================== Orders ====================
api_router.include_router(orders.router)
api_router.include_router(admin_orders.router)

# ==================== Coupons ====================
api_router.include_router(coupons.router)

# ==================== Invoices ====================
api_router.include_router(invoices.router)

# ==================== Storefront Content ====================
api_router.include_router(filters.router)
api_router.include_router(banners.router)

# ==================== Try Before You Buy ====================
api_router.include_router(tbyb.router)

# ==================== Fake Data ====================
api_router.include_router(fake_data.router)
