# Import every model so Base.metadata knows all tables
from app.models.user import User, Role
from app.models.partner import Partner
from app.models.address import UserAddress, PartnerAddress
from app.models.item import Item, ItemDetail
from app.models.order import (
    UserOrder,
    UserOrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    RefundStatus,
    TERMINAL_ORDER_STATUSES,
)
from app.models.partner_order import PartnerOrder, PartnerOrderItem, PartnerOrderStatus
from app.models.phone_otp import PhoneOTP
from app.models.refresh_token import RefreshToken
from app.models.coupon import Coupon, CouponUsage, DiscountType
from app.models.filter import Filter
from app.models.banner import Banner
from app.models.invoice import Invoice, InvoiceEntry
from app.models.review import UserReview
from app.models.tbyb import UserTBYB
from app.models.cart import CartItem
from app.models.wishlist import WishlistItem

__all__ = [
    "User", "Role", "Partner", "UserAddress", "PartnerAddress",
    "Item", "ItemDetail",
    "UserOrder", "UserOrderItem", "OrderStatus", "PaymentMethod", "PaymentStatus",
    "RefundStatus", "TERMINAL_ORDER_STATUSES",
    "PartnerOrder", "PartnerOrderItem", "PartnerOrderStatus",
    "PhoneOTP", "RefreshToken",
    "Coupon", "CouponUsage", "DiscountType",
    "Filter", "Banner", "Invoice", "InvoiceEntry",
    "UserReview", "UserTBYB", "CartItem", "WishlistItem",
]
