from wolt.client import WoltAddr, RetryConfig, WoltGroup
from wolt.models import (
    Coordinate,
    DeliveryPricing,
    DistanceRange,
    OrderDetails,
    OrderStatus,
    Participant,
    Venue,
    distance,
    is_unset,
)

__all__ = [
    'WoltAddr',
    'RetryConfig',
    'WoltGroup',
    'Coordinate',
    'DeliveryPricing',
    'DistanceRange',
    'OrderDetails',
    'OrderStatus',
    'Participant',
    'Venue',
    'distance',
    'is_unset',
]
