import math

from pydantic import BaseModel, Field

from ridehail.core.exceptions import ValidationError
from ridehail.geo.distance import haversine_distance_km, validate_coordinates
from ridehail.settings import FareSettings


class FareEstimate(BaseModel):
    """Price and duration quoted for a trip before booking."""

    distance_km: float = Field(ge=0)
    base_fare: float = Field(ge=0)
    distance_charge: float = Field(ge=0)
    fare: float = Field(ge=0)
    estimated_duration_min: int = Field(ge=0)
    currency: str


class FareCalculator:
    """Calculates ride fares from the great-circle distance between two points."""

    def __init__(self, settings: FareSettings | None = None):
        settings = settings or FareSettings()
        self.base_fare = settings.base_fare
        self.per_km_rate = settings.per_km_rate
        self.average_speed_kmh = settings.average_speed_kmh
        self.currency = settings.currency

    def calculate(self, distance_km: float) -> FareEstimate:
        """
        Calculate fare for a distance.

        Fare is fixed at request time from the straight-line distance;
        it is not revised when the trip completes.
        """
        if distance_km < 0:
            raise ValidationError("Distance must be non-negative", {"distance_km": distance_km})

        distance_charge = round(distance_km * self.per_km_rate, 2)
        fare = round(self.base_fare + distance_km * self.per_km_rate, 2)

        return FareEstimate(
            distance_km=round(distance_km, 2),
            base_fare=self.base_fare,
            distance_charge=distance_charge,
            fare=fare,
            estimated_duration_min=self.estimate_duration_min(distance_km),
            currency=self.currency,
        )

    def estimate(
        self, pickup: tuple[float, float], dropoff: tuple[float, float]
    ) -> FareEstimate:
        """Quote a trip between two (lat, lon) points."""
        try:
            validate_coordinates(*pickup)
            validate_coordinates(*dropoff)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        distance_km = haversine_distance_km(pickup[0], pickup[1], dropoff[0], dropoff[1])
        return self.calculate(distance_km)

    def estimate_duration_min(self, distance_km: float) -> int:
        return math.ceil(distance_km / self.average_speed_kmh * 60)
