"""
Customer Schemas

A customer's purchases across every vendor they have bought from.
"""
from pydantic import BaseModel
from typing import List

from shiteni.schemas.bus import TicketResponse
from shiteni.schemas.hotel import BookingResponse
from shiteni.schemas.pharmacy import PharmacyOrderResponse
from shiteni.schemas.store import StoreOrderResponse


class CustomerPurchasesResponse(BaseModel):
    hotel_bookings: List[BookingResponse]
    store_orders: List[StoreOrderResponse]
    pharmacy_orders: List[PharmacyOrderResponse]
    bus_tickets: List[TicketResponse]
