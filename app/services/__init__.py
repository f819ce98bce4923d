# Services module
from app.services.auth_service import AuthService
from app.services.coupon_service import CouponService
from app.services.fake_data_service import FakeDataService
from app.services.invoice_service import InvoiceService
from app.services.order_service import UserOrderService
from app.services.otp_service import OTPService

__all__ = [
    "AuthService",
    "CouponService",
    "FakeDataService",
    "InvoiceService",
    "OTPService",
    "UserOrderService",
]
