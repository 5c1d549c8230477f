from datetime import datetime
from enum import Enum
from statistics import fmean

from pydantic import BaseModel, Field


class RatingDirection(str, Enum):
    PASSENGER_TO_DRIVER = "passenger_to_driver"
    DRIVER_TO_PASSENGER = "driver_to_passenger"


class DriverRatingScores(BaseModel):
    """Scores a passenger gives the driver after a trip."""

    driving_skills: int = Field(ge=1, le=5)
    friendliness: int = Field(ge=1, le=5)
    car_cleanliness: int = Field(ge=1, le=5)
    punctuality: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=500)

    def components(self) -> dict[str, int]:
        return self.model_dump(exclude={"comment"})


class PassengerRatingScores(BaseModel):
    """Scores a driver gives the passenger after a trip."""

    punctuality: int = Field(ge=1, le=5)
    cleanliness: int = Field(ge=1, le=5)
    manners: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=500)

    def components(self) -> dict[str, int]:
        return self.model_dump(exclude={"comment"})


class Rating(BaseModel):
    """Rating submitted by one party of a completed ride. Immutable once stored."""

    rating_id: str
    ride_id: str
    rater_id: str
    ratee_id: str
    direction: RatingDirection
    components: dict[str, int]
    overall_score: float = Field(ge=1, le=5)
    comment: str | None = None
    created_at: datetime | None = None


def overall_score(components: dict[str, int]) -> float:
    """Unweighted mean of the component scores."""
    return fmean(components.values())


def aggregate_rating(scores: list[float]) -> float:
    """Profile rating: mean of every overall score, one decimal. No ratings means 5.0."""
    if not scores:
        return 5.0
    return round(fmean(scores), 1)
