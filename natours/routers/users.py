"""User API endpoints: authentication, own profile and admin user management."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from natours.database import get_db
from natours.dependencies import ADMINS, get_current_user, require_roles
from natours.errors import ValidationError
from natours.models.user import User
from natours.rate_limit import limiter
from natours.schemas.common import DocumentEnvelope, ListEnvelope, MessageResponse, document, documents
from natours.schemas.user import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UpdateMeRequest,
    UpdatePasswordRequest,
    UserCreateRequest,
    UserData,
    UserEnvelope,
    UserResponse,
    UserUpdateRequest,
)
from natours.services.auth import get_auth_service
from natours.services.jwt import get_jwt_service
from natours.services.query import QueryFeatures
from natours.services.users import HIDDEN_FIELDS, get_user_service

router = APIRouter(prefix="/users", tags=["Users"])


def _auth_response(user: User) -> AuthResponse:
    token = get_jwt_service().create_token(user.id)
    return AuthResponse(token=token, data=UserData(user=UserResponse.model_validate(user)))


# --- Authentication ---


@router.post("/signup", response_model=AuthResponse, status_code=201)
@limiter.limit("5/minute")
def signup(request: Request, body: SignupRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Register a new user account and log it in."""
    user = get_auth_service().signup(db, body.name, body.email, body.password)
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
@limiter.limit("10/minute")
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Authenticate and receive a JWT token."""
    user = get_auth_service().login(db, body.email, body.password)
    return _auth_response(user)


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit("3/minute")
def forgot_password(request: Request, body: ForgotPasswordRequest, db: Session = Depends(get_db)) -> MessageResponse:
    """Email a password reset link to the user."""
    get_auth_service().request_password_reset(db, body.email, str(request.base_url))
    return MessageResponse(message="Token sent to email!")


@router.patch("/reset-password/{token}", response_model=AuthResponse)
@limiter.limit("5/minute")
def reset_password(
    request: Request, token: str, body: ResetPasswordRequest, db: Session = Depends(get_db)
) -> AuthResponse:
    """Reset password using a valid token. Returns a fresh JWT."""
    user = get_auth_service().reset_password(db, token, body.password)
    return _auth_response(user)


@router.patch("/update-password", response_model=AuthResponse)
def update_password(
    body: UpdatePasswordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AuthResponse:
    """Change the current user's password. Tokens issued before the change stop working."""
    user = get_auth_service().update_password(db, user, body.password_current, body.password)
    return _auth_response(user)


# --- Own profile ---


@router.get("/get-me", response_model=UserEnvelope)
def get_me(user: User = Depends(get_current_user)) -> UserEnvelope:
    return UserEnvelope(data=UserData(user=UserResponse.model_validate(user)))


@router.patch("/update-me", response_model=UserEnvelope)
def update_me(
    body: UpdateMeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserEnvelope:
    """Update name and email of the current user."""
    if body.password is not None or body.password_confirm is not None:
        raise ValidationError("This route is not for password updates. Please use /update-password.")

    changes = body.model_dump(include={"name", "email"}, exclude_unset=True)
    user = get_user_service().update_user(db, user, changes)
    return UserEnvelope(data=UserData(user=UserResponse.model_validate(user)))


@router.delete("/delete-me", status_code=204)
def delete_me(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Response:
    """Deactivate the current user's account."""
    get_user_service().deactivate(db, user)
    return Response(status_code=204)


# --- Admin user management ---


@router.get("", response_model=ListEnvelope, dependencies=[Depends(require_roles(ADMINS))])
def list_users(request: Request, db: Session = Depends(get_db)) -> dict:
    features = QueryFeatures(
        get_user_service().base_query(db), User, request.query_params.multi_items(), hidden=HIDDEN_FIELDS
    )
    return documents(features.filter().sort().project().paginate().all())


@router.post(
    "",
    response_model=DocumentEnvelope[UserResponse],
    status_code=201,
    dependencies=[Depends(require_roles(ADMINS))],
)
def create_user(body: UserCreateRequest, db: Session = Depends(get_db)) -> dict:
    user = get_auth_service().create_user(db, body.name, body.email, body.password, role=body.role, photo=body.photo)
    return document(UserResponse.model_validate(user))


@router.get(
    "/{user_id}", response_model=DocumentEnvelope[UserResponse], dependencies=[Depends(require_roles(ADMINS))]
)
def get_user(user_id: int, db: Session = Depends(get_db)) -> dict:
    return document(UserResponse.model_validate(get_user_service().get_user(db, user_id)))


@router.patch(
    "/{user_id}", response_model=DocumentEnvelope[UserResponse], dependencies=[Depends(require_roles(ADMINS))]
)
def update_user(user_id: int, body: UserUpdateRequest, db: Session = Depends(get_db)) -> dict:
    service = get_user_service()
    user = service.update_user(db, service.get_user(db, user_id), body.model_dump(exclude_unset=True))
    return document(UserResponse.model_validate(user))


@router.delete("/{user_id}", status_code=204, dependencies=[Depends(require_roles(ADMINS))])
def delete_user(user_id: int, db: Session = Depends(get_db)) -> Response:
    service = get_user_service()
    service.delete_user(db, service.get_user(db, user_id))
    return Response(status_code=204)
