from enum import Enum


class UserRole(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"

    def __str__(self):
        return self.value


class QuoteRequestStatus(str, Enum):
    AWAITING_QUOTE = "Awaiting Quote"
    QUOTED = "Quoted"
    QUOTE_ACCEPTED = "Quote Accepted"
    QUOTE_REJECTED = "Quote Rejected"

    def __str__(self):
        return self.value


class QuoteStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    FINALIZED = "Finalized"
    EXPIRED = "Expired"

    def __str__(self):
        return self.value


# Statuses from which a quote may still be converted into a shipment
CONVERTIBLE_QUOTE_STATUSES = (QuoteStatus.PENDING, QuoteStatus.FINALIZED)

# The only targets a customer may set on their own quote
CUSTOMER_QUOTE_STATUSES = (QuoteStatus.ACCEPTED, QuoteStatus.REJECTED)


class ShipmentStage:
    """Well-known shipment stages. The column itself is free-form."""
    BOOKING_CONFIRMED = "Booking Confirmed"
    CARGO_RECEIVED = "Cargo Received"
    IN_TRANSIT = "In Transit"
    CUSTOMS_CLEARANCE = "Customs Clearance"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"


class EntityKind(str, Enum):
    QUOTE_REQUEST = "quote_request"
    QUOTE = "quote"
    SHIPMENT = "shipment"

    def __str__(self):
        return self.value


class Action(str, Enum):
    VIEW_QUOTE_REQUEST = "view_quote_request"
    CREATE_QUOTE_REQUEST = "create_quote_request"
    SET_QUOTE_REQUEST_STATUS = "set_quote_request_status"
    VIEW_QUOTE = "view_quote"
    CREATE_QUOTE = "create_quote"
    SET_QUOTE_STATUS = "set_quote_status"
    ACCEPT_QUOTE = "accept_quote"
    VIEW_SHIPMENT = "view_shipment"
    UPDATE_SHIPMENT_STATUS = "update_shipment_status"
    APPEND_TRACKING_EVENT = "append_tracking_event"
    UPDATE_SHIPMENT_CARGO = "update_shipment_cargo"

    def __str__(self):
        return self.value


class AuditAction(str, Enum):
    REGISTER = "register"
    LOGIN = "login"
    CREATE_QUOTE_REQUEST = "create_quote_request"
    UPDATE_QUOTE_REQUEST_STATUS = "update_quote_request_status"
    CREATE_QUOTE = "create_quote"
    UPDATE_QUOTE_STATUS = "update_quote_status"
    ACCEPT_QUOTE = "accept_quote"
    UPDATE_SHIPMENT_STATUS = "update_shipment_status"
    UPDATE_SHIPMENT_WEIGHTS = "update_shipment_weights"
    ADD_TRACKING_EVENT = "add_tracking_event"

    def __str__(self):
        return self.value
