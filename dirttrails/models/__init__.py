from dirttrails.models.service import Service
from dirttrails.models.order import Order, OrderItem, OrderStatus
from dirttrails.models.payment import Payment, PaymentStatus
from dirttrails.models.ticket import Ticket, TicketAllocation, TicketStatus, TicketType
from dirttrails.models.booking import Booking, BookingPaymentStatus, BookingStatus
from dirttrails.models.transaction import Transaction, TransactionStatus, TransactionType

__all__ = [
    "Service",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Payment",
    "PaymentStatus",
    "Ticket",
    "TicketAllocation",
    "TicketStatus",
    "TicketType",
    "Booking",
    "BookingPaymentStatus",
    "BookingStatus",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
]
