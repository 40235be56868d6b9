import math
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

EARTH_RADIUS_METERS = 6378100
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_wolt_date(value: Any) -> datetime:
    """Wolt encodes timestamps as {"$date": <unix millis>}"""
    if value is None:
        return EPOCH
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, dict):
        value = value.get('$date', 0)
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


WoltDate = Annotated[datetime, BeforeValidator(parse_wolt_date)]


def is_unset(moment: Optional[datetime]) -> bool:
    return moment is None or moment == EPOCH


class OrderStatus(str, Enum):
    ACTIVE = "active"
    CANCELED = "cancelled"
    PENDING_TRANSACTION = "pending_transaction"
    PURCHASED = "purchased"

    def purchased(self) -> bool:
        return self in (OrderStatus.PURCHASED, OrderStatus.PENDING_TRANSACTION)


class Coordinate(BaseModel):
    lat: float
    lon: float

    @classmethod
    def from_geojson(cls, values: List[float]) -> "Coordinate":
        if len(values) != 2:
            raise ValueError(f"coordinate doesn't have exactly 2 elements: {values}")
        # GeoJSON order is [lon, lat]
        return cls(lat=values[1], lon=values[0])


def _hsin(theta: float) -> float:
    return math.sin(theta / 2) ** 2


def distance(first: Coordinate, second: Coordinate) -> float:
    """Great-circle distance in meters (haversine on a spherical Earth)"""
    la1 = math.radians(first.lat)
    lo1 = math.radians(first.lon)
    la2 = math.radians(second.lat)
    lo2 = math.radians(second.lon)

    h = _hsin(la2 - la1) + math.cos(la1) * math.cos(la2) * _hsin(lo2 - lo1)
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(h))


class Item(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base_price: float = Field(0, alias="baseprice")
    end_amount: float = 0


class Basket(BaseModel):
    items: List[Item] = Field(default_factory=list)


class Participant(BaseModel):
    first_name: str = ""
    last_name: str = ""
    status: str = ""
    user_id: str = ""
    basket: Basket = Field(default_factory=Basket)

    @property
    def name(self) -> str:
        if self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name

    @property
    def total(self) -> float:
        return sum(item.end_amount / 100 for item in self.basket.items)


class _Coordinates(BaseModel):
    coordinates: List[float] = Field(default_factory=list)


class _Location(BaseModel):
    coordinates: _Coordinates = Field(default_factory=_Coordinates)


class _DeliveryLocation(BaseModel):
    location: _Location = Field(default_factory=_Location)


class _GroupDetails(BaseModel):
    venue_id: str = ""
    delivery_info: _DeliveryLocation = Field(default_factory=_DeliveryLocation)


class DeliveryStatusEntry(BaseModel):
    status: str
    created_at: WoltDate = EPOCH


class Purchase(BaseModel):
    purchase_datetime: WoltDate = EPOCH
    delivery_eta: WoltDate = EPOCH
    delivery_status: str = ""
    delivery_status_log: List[DeliveryStatusEntry] = Field(default_factory=list)

    @property
    def status_log(self) -> Dict[str, datetime]:
        return {entry.status: entry.created_at for entry in self.delivery_status_log}


class OrderDetails(BaseModel):
    """Typed view over the `participants/me` response of a group order"""
    model_config = ConfigDict(populate_by_name=True)

    status: OrderStatus
    created_at: WoltDate = EPOCH
    host_id: str = ""
    details: _GroupDetails = Field(default_factory=_GroupDetails)
    participants: List[Participant] = Field(default_factory=list)
    purchase: Purchase = Field(default_factory=Purchase)

    @property
    def venue_id(self) -> str:
        return self.details.venue_id

    @property
    def delivery_coordinate(self) -> Coordinate:
        return Coordinate.from_geojson(self.details.delivery_info.location.coordinates.coordinates)

    @property
    def host(self) -> str:
        for participant in self.participants:
            if participant.user_id == self.host_id:
                return participant.name
        raise ValueError(f"user matching host ID {self.host_id!r} not found")

    @property
    def purchase_datetime(self) -> datetime:
        return self.purchase.purchase_datetime

    @property
    def delivery_eta(self) -> datetime:
        return self.purchase.delivery_eta

    def is_delivered(self) -> bool:
        return self.purchase.delivery_status == "delivered" or "delivered" in self.purchase.status_log

    def rate_by_person(self) -> Dict[str, float]:
        output = {}
        for participant in self.participants:
            total = participant.total
            if total == 0:
                continue
            # Namesakes share one label, keep both baskets
            output[participant.name] = output.get(participant.name, 0) + total
        return output


class DistanceRange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    added_price: int = Field(0, alias="a")
    min_distance: int = Field(0, alias="min")
    max_distance: int = Field(0, alias="max")

    def contains(self, meters: float) -> bool:
        return meters >= self.min_distance and (meters < self.max_distance or self.max_distance == 0)


class DeliveryPricing(BaseModel):
    base_price: int = 0
    distance_ranges: List[DistanceRange] = Field(default_factory=list)

    def price_for_distance(self, meters: float) -> int:
        """Price in minor currency units"""
        price = self.base_price
        for distance_range in self.distance_ranges:
            if distance_range.contains(meters):
                price += distance_range.added_price
                break
        return price


class DeliverySpecs(BaseModel):
    delivery_enabled: bool = True
    delivery_pricing: Optional[DeliveryPricing] = None


class _VenueLocation(BaseModel):
    coordinates: List[float] = Field(default_factory=list)


class Venue(BaseModel):
    """Typed view over the first result of `/v3/venues/<id>`"""
    id: str = ""
    name: str = ""
    public_url: str = ""
    city: str = ""
    online: bool = True
    timezone: str = "UTC"
    location: _VenueLocation = Field(default_factory=_VenueLocation)
    delivery_specs: DeliverySpecs = Field(default_factory=DeliverySpecs)
    offline_period_end: WoltDate = EPOCH

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate.from_geojson(self.location.coordinates)

    @property
    def timezone_info(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            return ZoneInfo("UTC")

    def is_delivering(self) -> bool:
        return self.online and self.delivery_specs.delivery_enabled

    def calculate_delivery_rate(self, destination: Coordinate) -> int:
        """Delivery fee in whole currency units"""
        if self.delivery_specs.delivery_pricing is None:
            raise ValueError("venue has no delivery pricing")
        meters = int(distance(self.coordinate, destination))
        return self.delivery_specs.delivery_pricing.price_for_distance(meters) // 100
