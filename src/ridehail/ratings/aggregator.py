"""Rating submission and full recomputation of the ratee's aggregate."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ridehail.accounts.models import Role
from ridehail.accounts.tokens import Principal
from ridehail.core.exceptions import (
    AuthorizationError,
    ConflictError,
    GuardViolationError,
    NotFoundError,
)
from ridehail.db.repositories import (
    BaseProfileRepository,
    DriverRepository,
    PassengerRepository,
    RatingRepository,
    RideRepository,
)
from ridehail.db.transaction import transaction
from ridehail.db.utils import new_id
from ridehail.messaging.models import NotificationType
from ridehail.messaging.notifications import notify
from ridehail.pubsub import EventBuffer, EventPublisher
from ridehail.rating import (
    DriverRatingScores,
    PassengerRatingScores,
    Rating,
    RatingDirection,
    aggregate_rating,
    overall_score,
)
from ridehail.ride import RideStatus
from ridehail.ride_logging import log_ride_context

logger = logging.getLogger(__name__)


class RatingAggregator:
    """Stores one rating per ride and direction and recomputes the ratee's profile rating."""

    def __init__(self, session_factory: sessionmaker[Session], publisher: EventPublisher):
        self._session_factory = session_factory
        self._publisher = publisher

    def rate_driver(self, principal: Principal, ride_id: str, scores: DriverRatingScores) -> Rating:
        if principal.role != Role.PASSENGER:
            raise AuthorizationError("Passenger role required")
        return self._submit(
            principal.account_id,
            ride_id,
            RatingDirection.PASSENGER_TO_DRIVER,
            scores.components(),
            scores.comment,
        )

    def rate_passenger(
        self, principal: Principal, ride_id: str, scores: PassengerRatingScores
    ) -> Rating:
        if principal.role != Role.DRIVER:
            raise AuthorizationError("Driver role required")
        return self._submit(
            principal.account_id,
            ride_id,
            RatingDirection.DRIVER_TO_PASSENGER,
            scores.components(),
            scores.comment,
        )

    def _submit(
        self,
        rater_id: str,
        ride_id: str,
        direction: RatingDirection,
        components: dict[str, int],
        comment: str | None,
    ) -> Rating:
        events = EventBuffer(self._publisher)
        try:
            with (
                log_ride_context(ride_id, rater_id=rater_id),
                self._session_factory() as session,
                transaction(session),
            ):
                ride = RideRepository(session).get(ride_id)
                if ride is None:
                    raise NotFoundError("Ride not found", {"ride_id": ride_id})

                if direction == RatingDirection.PASSENGER_TO_DRIVER:
                    expected_rater, ratee_id = ride.passenger_id, ride.driver_id
                    profiles: BaseProfileRepository = DriverRepository(session)
                else:
                    expected_rater, ratee_id = ride.driver_id, ride.passenger_id
                    profiles = PassengerRepository(session)

                if rater_id != expected_rater or ratee_id is None:
                    raise GuardViolationError("You can only rate rides you took part in")
                if ride.status != RideStatus.COMPLETED:
                    raise GuardViolationError(
                        "Only completed rides can be rated", {"status": ride.status.value}
                    )

                # Ratings of one ratee recompute one at a time under this row lock
                if profiles.lock(ratee_id) is None:
                    raise NotFoundError("Profile not found", {"account_id": ratee_id})

                ratings = RatingRepository(session)
                if ratings.exists(ride_id, direction):
                    raise GuardViolationError("You have already rated this ride")

                rating = ratings.create(
                    rating_id=new_id(),
                    ride_id=ride_id,
                    rater_id=rater_id,
                    ratee_id=ratee_id,
                    direction=direction,
                    components=components,
                    overall_score=overall_score(components),
                    comment=comment,
                )

                scores = ratings.overall_scores_for(ratee_id, direction)
                new_rating = aggregate_rating(scores)
                profiles.update_rating(ratee_id, new_rating, len(scores))

                notify(
                    session,
                    events,
                    ratee_id,
                    NotificationType.RATING_RECEIVED,
                    f"You received a {rating.overall_score:.2f} star rating",
                    ride_id=ride_id,
                )
                logger.info(
                    f"Rating {rating.overall_score:.2f} stored, {ratee_id} now "
                    f"{new_rating} over {len(scores)} ratings"
                )
        except IntegrityError as e:
            raise ConflictError("This ride was rated concurrently") from e

        events.publish_all()
        return rating
