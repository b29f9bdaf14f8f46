"""
Domain Enums - Business domain enumerations
"""

from enum import Enum


class UserRole(str, Enum):
    CUSTOMER = "customer"
    CHEF = "chef"
    DRIVER = "driver"
    ADMIN = "admin"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAYMENT_CONFIRMED = "payment_confirmed"
    ACCEPTED = "accepted"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    ASSIGNED_TO_DRIVER = "assigned_to_driver"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    REFUNDED = "refunded"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class AssignmentStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class LedgerActorType(str, Enum):
    CHEF = "chef"
    DRIVER = "driver"
    PLATFORM = "platform"


class LedgerEntryKind(str, Enum):
    ORDER_EARNING = "order_earning"
    DELIVERY_EARNING = "delivery_earning"
    PLATFORM_FEE = "platform_fee"
    ORDER_EARNING_REVERSAL = "order_earning_reversal"
    DELIVERY_EARNING_REVERSAL = "delivery_earning_reversal"
    PLATFORM_FEE_REVERSAL = "platform_fee_reversal"


class RefundStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class OutboxStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


class OutboxTopic(str, Enum):
    NOTIFICATION = "notification"
    DISPATCH_REQUESTED = "dispatch.requested"
    DISPATCH_PARTNER = "dispatch.partner"
    PAYMENT_REFUND = "payment.refund"
