from fastapi import APIRouter, Request, Response, status

from ridehail.accounts.models import (
    AccountView,
    AuthResult,
    ChangePasswordRequest,
    LinkRoleRequest,
    LoginRequest,
    RegisterRequest,
    UpdateProfileRequest,
    VerifyPhoneRequest,
)
from ridehail.api.dependencies import AccountsDep, PrincipalDep
from ridehail.api.rate_limit import auth_rate_limit, limiter

router = APIRouter()


@router.post("/register", response_model=AuthResult, status_code=status.HTTP_201_CREATED)
@limiter.limit(auth_rate_limit)
def register(request: Request, body: RegisterRequest, accounts: AccountsDep) -> AuthResult:
    """Create an account with its first role profile and return a token for that role."""
    return accounts.register(body)


@router.post("/login", response_model=AuthResult)
@limiter.limit(auth_rate_limit)
def login(request: Request, body: LoginRequest, accounts: AccountsDep) -> AuthResult:
    return accounts.login(body)


@router.get("/me", response_model=AccountView)
def me(principal: PrincipalDep, accounts: AccountsDep) -> AccountView:
    return accounts.get_account(principal.account_id)


@router.patch("/me", response_model=AccountView)
def update_me(
    body: UpdateProfileRequest, principal: PrincipalDep, accounts: AccountsDep
) -> AccountView:
    return accounts.update_profile(principal.account_id, body)


@router.post("/roles", response_model=AuthResult, status_code=status.HTTP_201_CREATED)
def link_role(body: LinkRoleRequest, principal: PrincipalDep, accounts: AccountsDep) -> AuthResult:
    """Add a passenger or driver profile to the signed-in account."""
    return accounts.link_role(principal.account_id, body)


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(auth_rate_limit)
def change_password(
    request: Request, body: ChangePasswordRequest, principal: PrincipalDep, accounts: AccountsDep
) -> Response:
    accounts.change_password(principal.account_id, body)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/verify-phone", response_model=AccountView)
def verify_phone(
    body: VerifyPhoneRequest, principal: PrincipalDep, accounts: AccountsDep
) -> AccountView:
    return accounts.verify_phone(principal.account_id)
