# passvault/server/routers/auth.py
import logging
import re
import time
from html import escape
from typing import Annotated, Optional
from urllib.parse import urlencode, urlparse
from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlmodel import Session, select
from pydantic import BaseModel
from jose import JWTError, jwt

from ..database import get_session
from ..mailer import DevMailer, get_mailer
from ..models import ActionToken, User
from ..security import get_password_hash, verify_password, create_access_token, new_action_token
from ..config import settings

logger = logging.getLogger(__name__)

router = APIRouter()

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# --- request / response bodies ---

class UserCreate(BaseModel):
    email: str
    password: str
    display_name: Optional[str] = None

class Token(BaseModel):
    access_token: str
    token_type: str

class UserRead(BaseModel):
    uid: str
    email: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    email_verified: bool

class ProfileUpdate(BaseModel):
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

class VerificationRequest(BaseModel):
    continue_url: Optional[str] = None

class TokenConfirm(BaseModel):
    token: str

class ResetRequest(BaseModel):
    email: str

class ResetConfirm(BaseModel):
    token: str
    new_password: str

class OAuthCodeExchange(BaseModel):
    code: str
    redirect_uri: Optional[str] = None

def _error(status_code: int, code: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail=code)

def _check_email(email: str):
    if not EMAIL_RE.match(email):
        raise _error(status.HTTP_400_BAD_REQUEST, "INVALID_EMAIL")

def _check_password(password: str):
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        raise _error(status.HTTP_400_BAD_REQUEST, "WEAK_PASSWORD")

def _page(title: str, message: str, status_code: int = 200, extra: str = "") -> HTMLResponse:
    """Minimal page for the links people open from their inbox."""
    body = (f"<!doctype html><html><head><title>{escape(title)}</title></head>"
            f"<body><h1>{escape(title)}</h1><p>{escape(message)}</p>{extra}</body></html>")
    return HTMLResponse(body, status_code=status_code)

def _page_error(exc: HTTPException) -> str:
    if exc.detail == "WEAK_PASSWORD":
        return f"Password should be at least {settings.MIN_PASSWORD_LENGTH} characters."
    if exc.detail == "INVALID_TOKEN":
        return "This link is invalid or has expired."
    return "Something went wrong. Please try again."

def _user_by_email(session: Session, email: str) -> Optional[User]:
    return session.exec(select(User).where(User.email == email.strip().lower())).first()

def _issue_action_token(session: Session, user: User, purpose: str, ttl: int) -> str:
    token = new_action_token()
    session.add(ActionToken(token=token, purpose=purpose, user_id=user.id, expires_at=time.time() + ttl))  # type: ignore[arg-type]
    session.commit()
    return token

def _redeem_action_token(session: Session, token: str, purpose: str) -> User:
    record = session.get(ActionToken, token)
    if not record or record.purpose != purpose or record.used or record.expires_at < time.time():
        raise _error(status.HTTP_400_BAD_REQUEST, "INVALID_TOKEN")
    record.used = True
    session.add(record)
    user = session.get(User, record.user_id)
    if user is None:
        raise _error(status.HTTP_400_BAD_REQUEST, "INVALID_TOKEN")
    return user

# --- current user dependency ---
# Reads "Authorization: Bearer <token>"
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

async def get_current_user(token: Annotated[str, Depends(oauth2_scheme)],
                           session: Session = Depends(get_session)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="INVALID_ID_TOKEN",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        uid_val = payload.get("sub")
        if uid_val is None:
            raise credentials_exception
        uid: str = str(uid_val)
    except JWTError:
        raise credentials_exception

    user = session.exec(select(User).where(User.uid == uid)).first()
    if user is None:
        raise credentials_exception
    return user

# Credential routes only serve accounts that finished email verification
async def get_verified_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.email_verified:
        raise _error(status.HTTP_403_FORBIDDEN, "EMAIL_NOT_VERIFIED")
    return current_user

# --- accounts ---

@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(user_in: UserCreate, session: Session = Depends(get_session)):
    email = user_in.email.strip().lower()
    _check_email(email)
    if _user_by_email(session, email):
        raise _error(status.HTTP_400_BAD_REQUEST, "EMAIL_EXISTS")
    _check_password(user_in.password)

    new_user = User(
        email=email,
        hashed_password=get_password_hash(user_in.password),
        display_name=user_in.display_name or None,
    )
    session.add(new_user)
    session.commit()
    session.refresh(new_user)
    logger.info("Registered user %s", new_user.uid)
    return new_user

@router.post("/token", response_model=Token)
def login_for_access_token(form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
                           session: Session = Depends(get_session)):
    user = _user_by_email(session, form_data.username)
    now = time.time()

    if user and user.locked_until > now:
        raise _error(status.HTTP_429_TOO_MANY_REQUESTS, "TOO_MANY_ATTEMPTS_TRY_LATER")

    if not user or not verify_password(form_data.password, user.hashed_password):
        if user:
            user.failed_logins += 1
            if user.failed_logins >= settings.MAX_FAILED_LOGINS:
                user.locked_until = now + settings.LOCKOUT_SECONDS
                user.failed_logins = 0
                logger.warning("Locked user %s after repeated failed sign-ins", user.uid)
            session.add(user)
            session.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="INVALID_LOGIN_CREDENTIALS",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.failed_logins:
        user.failed_logins = 0
        session.add(user)
        session.commit()
    return {"access_token": create_access_token(subject=user.uid), "token_type": "bearer"}

@router.get("/me", response_model=UserRead)
def read_users_me(current_user: User = Depends(get_current_user)):
    return current_user

@router.patch("/me", response_model=UserRead)
def update_me(changes: ProfileUpdate,
              current_user: User = Depends(get_current_user),
              session: Session = Depends(get_session)):
    for key, value in changes.model_dump(exclude_none=True).items():
        setattr(current_user, key, value)
    session.add(current_user)
    session.commit()
    session.refresh(current_user)
    return current_user

# --- email verification ---

@router.post("/verification/send", status_code=status.HTTP_204_NO_CONTENT)
def send_verification(body: VerificationRequest,
                      current_user: User = Depends(get_current_user),
                      session: Session = Depends(get_session),
                      mailer: DevMailer = Depends(get_mailer)):
    token = _issue_action_token(session, current_user, "verify_email", settings.VERIFICATION_TOKEN_TTL)
    params = {"token": token}
    if body.continue_url:
        params["continue_url"] = body.continue_url
    link = f"{settings.PUBLIC_URL.rstrip('/')}/auth/verification/confirm?{urlencode(params)}"
    mailer.send(current_user.email, "Verify your email", link, token)

def _verify_email(session: Session, token: str) -> User:
    user = _redeem_action_token(session, token, "verify_email")
    user.email_verified = True
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Verified email for %s", user.uid)
    return user

@router.post("/verification/confirm", response_model=UserRead)
def confirm_verification(body: TokenConfirm, session: Session = Depends(get_session)):
    return _verify_email(session, body.token)

# The emailed link lands here
@router.get("/verification/confirm", response_class=HTMLResponse)
def confirm_verification_link(token: str, continue_url: Optional[str] = None,
                              session: Session = Depends(get_session)):
    try:
        user = _verify_email(session, token)
    except HTTPException as exc:
        return _page("Verification failed", _page_error(exc), exc.status_code)
    extra = f'<p><a href="{escape(continue_url)}">Continue</a></p>' if continue_url else ""
    return _page("Email verified", f"{user.email} is verified. You can now sign in to PassVault.",
                 extra=extra)

# --- password reset ---

@router.post("/password-reset/send", status_code=status.HTTP_204_NO_CONTENT)
def send_password_reset(body: ResetRequest,
                        session: Session = Depends(get_session),
                        mailer: DevMailer = Depends(get_mailer)):
    _check_email(body.email.strip())
    user = _user_by_email(session, body.email)
    # Same answer whether or not the account exists
    if user is None:
        return
    token = _issue_action_token(session, user, "reset_password", settings.RESET_TOKEN_TTL)
    link = f"{settings.PUBLIC_URL.rstrip('/')}/auth/password-reset/confirm?{urlencode({'token': token})}"
    mailer.send(user.email, "Reset your password", link, token)

def _reset_password(session: Session, token: str, new_password: str):
    _check_password(new_password)
    user = _redeem_action_token(session, token, "reset_password")
    user.hashed_password = get_password_hash(new_password)
    user.failed_logins = 0
    user.locked_until = 0.0
    session.add(user)
    session.commit()
    logger.info("Password reset for %s", user.uid)

@router.post("/password-reset/confirm", status_code=status.HTTP_204_NO_CONTENT)
def confirm_password_reset(body: ResetConfirm, session: Session = Depends(get_session)):
    _reset_password(session, body.token, body.new_password)

# The emailed link opens a form; the token is only redeemed when the form is posted
@router.get("/password-reset/confirm", response_class=HTMLResponse)
def password_reset_form(token: str, request: Request):
    action = request.url_for("submit_password_reset_form")
    form = (f'<form method="post" action="{escape(str(action))}">'
            f'<input type="hidden" name="token" value="{escape(token)}">'
            '<input type="password" name="new_password" placeholder="New password" required>'
            '<button type="submit">Set password</button>'
            '</form>')
    return _page("Reset your password", "Choose a new password for your PassVault account.",
                 extra=form)

@router.post("/password-reset/form", response_class=HTMLResponse)
def submit_password_reset_form(token: Annotated[str, Form()],
                               new_password: Annotated[str, Form()],
                               session: Session = Depends(get_session)):
    try:
        _reset_password(session, token, new_password)
    except HTTPException as exc:
        return _page("Password not changed", _page_error(exc), exc.status_code)
    return _page("Password changed", "You can now sign in with your new password.")

# --- development OAuth ---

@router.get("/oauth/authorize")
def oauth_authorize(redirect_uri: str, state: str, provider: str = "google",
                    session: Session = Depends(get_session)):
    """Stands in for the provider's consent screen: approves the configured dev account."""
    parsed = urlparse(redirect_uri)
    if parsed.hostname not in ("127.0.0.1", "localhost"):
        raise _error(status.HTTP_400_BAD_REQUEST, "INVALID_REDIRECT_URI")

    user = _user_by_email(session, settings.OAUTH_DEV_EMAIL)
    if user is None:
        user = User(
            email=settings.OAUTH_DEV_EMAIL.lower(),
            hashed_password=get_password_hash(new_action_token()),
            display_name=settings.OAUTH_DEV_NAME,
            email_verified=settings.OAUTH_DEV_EMAIL_VERIFIED,
        )
        session.add(user)
        session.commit()
        session.refresh(user)

    code = _issue_action_token(session, user, "oauth_code", settings.OAUTH_CODE_TTL)
    logger.info("OAuth (%s) approved for %s", provider, user.uid)
    return RedirectResponse(f"{redirect_uri}?{urlencode({'code': code, 'state': state})}")

@router.post("/oauth/token", response_model=Token)
def oauth_token(body: OAuthCodeExchange, session: Session = Depends(get_session)):
    user = _redeem_action_token(session, body.code, "oauth_code")
    session.commit()
    return {"access_token": create_access_token(subject=user.uid), "token_type": "bearer"}
