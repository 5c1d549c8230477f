"""FastAPI dependency injection providers."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ridehail.accounts import AccountService, Principal, Role, TokenService
from ridehail.core.exceptions import AuthenticationError, AuthorizationError
from ridehail.matching import MatchingService
from ridehail.messaging import MessagingService
from ridehail.payments import PaymentService
from ridehail.ratings import RatingAggregator
from ridehail.rides import RideLifecycle

bearer_scheme = HTTPBearer(auto_error=False)


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


def get_accounts(request: Request) -> AccountService:
    return request.app.state.accounts


def get_lifecycle(request: Request) -> RideLifecycle:
    return request.app.state.lifecycle


def get_matching(request: Request) -> MatchingService:
    return request.app.state.matching


def get_ratings(request: Request) -> RatingAggregator:
    return request.app.state.ratings


def get_payments(request: Request) -> PaymentService:
    return request.app.state.payments


def get_messaging(request: Request) -> MessagingService:
    return request.app.state.messaging


def get_principal(
    tokens: Annotated[TokenService, Depends(get_tokens)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Principal:
    """Resolve the bearer token into the calling account and its active role."""
    if credentials is None:
        raise AuthenticationError("Authorization token required")
    return tokens.decode(credentials.credentials)


def require_role(role: Role) -> Callable[[Principal], Principal]:
    def dependency(principal: Annotated[Principal, Depends(get_principal)]) -> Principal:
        if principal.role != role:
            raise AuthorizationError(f"{role.value.capitalize()} role required")
        return principal

    return dependency


AccountsDep = Annotated[AccountService, Depends(get_accounts)]
LifecycleDep = Annotated[RideLifecycle, Depends(get_lifecycle)]
MatchingDep = Annotated[MatchingService, Depends(get_matching)]
RatingsDep = Annotated[RatingAggregator, Depends(get_ratings)]
PaymentsDep = Annotated[PaymentService, Depends(get_payments)]
MessagingDep = Annotated[MessagingService, Depends(get_messaging)]

PrincipalDep = Annotated[Principal, Depends(get_principal)]
PassengerDep = Annotated[Principal, Depends(require_role(Role.PASSENGER))]
DriverDep = Annotated[Principal, Depends(require_role(Role.DRIVER))]
