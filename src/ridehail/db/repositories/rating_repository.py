"""Rating repository."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from ridehail.rating import Rating as RatingDomain
from ridehail.rating import RatingDirection

from ..schema import Rating


class RatingRepository:
    """Repository for immutable rating rows."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        rating_id: str,
        ride_id: str,
        rater_id: str,
        ratee_id: str,
        direction: RatingDirection,
        components: dict[str, int],
        overall_score: float,
        comment: str | None = None,
    ) -> RatingDomain:
        rating = Rating(
            rating_id=rating_id,
            ride_id=ride_id,
            rater_id=rater_id,
            ratee_id=ratee_id,
            direction=direction.value,
            components=components,
            overall_score=overall_score,
            comment=comment,
        )
        self.session.add(rating)
        self.session.flush()
        return self._to_domain(rating)

    def exists(self, ride_id: str, direction: RatingDirection) -> bool:
        stmt = select(Rating.rating_id).where(
            Rating.ride_id == ride_id, Rating.direction == direction.value
        )
        return self.session.execute(stmt).first() is not None

    def overall_scores_for(self, ratee_id: str, direction: RatingDirection) -> list[float]:
        """Every overall score the ratee has received in one direction."""
        stmt = select(Rating.overall_score).where(
            Rating.ratee_id == ratee_id, Rating.direction == direction.value
        )
        return list(self.session.execute(stmt).scalars().all())

    def _to_domain(self, rating: Rating) -> RatingDomain:
        return RatingDomain(
            rating_id=rating.rating_id,
            ride_id=rating.ride_id,
            rater_id=rating.rater_id,
            ratee_id=rating.ratee_id,
            direction=RatingDirection(rating.direction),
            components=dict(rating.components),
            overall_score=rating.overall_score,
            comment=rating.comment,
            created_at=rating.created_at,
        )
