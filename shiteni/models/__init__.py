"""
Database Models

Every vendor-owned model carries vendor_id for isolation.
"""
from shiteni.models.vendor import Vendor, ServiceType, VendorStatus
from shiteni.models.user import User, UserRole, UserStatus
from shiteni.models.subscription import SubscriptionPlan, Subscription, BillingRecord
from shiteni.models.hotel import Room, HotelBooking
from shiteni.models.store import Product, StoreOrder, StoreOrderItem
from shiteni.models.pharmacy import Medicine, PharmacyOrder, PharmacyOrderItem
from shiteni.models.bus import Bus, BusFare, BusRoute, BusStop, BusTrip, BusTicket

__all__ = [
    "Vendor", "ServiceType", "VendorStatus",
    "User", "UserRole", "UserStatus",
    "SubscriptionPlan", "Subscription", "BillingRecord",
    "Room", "HotelBooking",
    "Product", "StoreOrder", "StoreOrderItem",
    "Medicine", "PharmacyOrder", "PharmacyOrderItem",
    "Bus", "BusRoute", "BusStop", "BusFare", "BusTrip", "BusTicket",
]
