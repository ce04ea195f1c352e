from .user import User
from .book import Book
from .purchase_request import PurchaseRequest, RequestStatus, TransferMode
from .delivery_confirmation import DeliveryConfirmation
from .notification import Notification
from .request_event import RequestEvent
from .review import Review


__all__ = [
    "User",
    "Book",
    "PurchaseRequest",
    "RequestStatus",
    "TransferMode",
    "DeliveryConfirmation",
    "Notification",
    "RequestEvent",
    "Review",
]
