from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime
from sqlalchemy.orm import Session
import secrets, string
import os
import logging
from dotenv import load_dotenv

from db import get_db, init_db
from models.schemas_user import (
    UserRegister, UserLogin, UserVerify, UserOut, TokenResponse, ForgotPasswordRequest, ResetPasswordRequest,
)
from models.models_user import ROLE_STUDENT
from utils.crud_user import get_user_by_email, create_user
from utils.auth_utils import hash_password, verify_password, create_token
from utils.current_user import auth_user
from utils.email_service import send_otp
from utils.errors import AppError, ConflictError, Forbidden, NotFound, Unauthorized, ValidationError

import profile_routes
import admin_routes
import applications_routes
import notification_routes
from eligibility import routes as eligibility_routes
from payments import routes as payment_routes

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("app")

app = FastAPI(title="AbroadPass API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

init_db()


@app.exception_handler(AppError)
def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500 or exc.detail:
        logger.error("%s %s -> %s %s: %s %s", request.method, request.url.path, exc.status_code, exc.kind, exc.message, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(profile_routes.router)
app.include_router(eligibility_routes.router)
app.include_router(admin_routes.router)
app.include_router(admin_routes.catalog_router)
app.include_router(applications_routes.router)
app.include_router(payment_routes.router)
app.include_router(payment_routes.webhook_router)
app.include_router(notification_routes.router)


def generate_otp(length: int = 6) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


def _check_otp(user, code: str) -> None:
    if not user.otp_code or not user.otp_expires:
        raise ValidationError("No OTP pending")
    if datetime.utcnow() > user.otp_expires:
        raise ValidationError("OTP expired")
    if not secrets.compare_digest(code, user.otp_code):
        raise ValidationError("Invalid OTP")


@app.post("/auth/register", response_model=dict, tags=["auth"], summary="Register & send OTP")
def register(payload: UserRegister, db: Session = Depends(get_db)):
    existing = get_user_by_email(db, payload.email)
    if existing:
        if existing.is_verified:
            raise ConflictError("Email already registered")
        user = existing
        user.full_name = payload.full_name
        user.password_hash = hash_password(payload.password)
    else:
        user = create_user(
            db,
            email=payload.email,
            full_name=payload.full_name,
            role=ROLE_STUDENT,
            password_hash=hash_password(payload.password),
        )
    code = generate_otp()
    user.set_otp(code)
    if not send_otp(user.email, code):
        db.rollback()
        raise AppError("Could not send verification email")
    db.commit()
    return {"message": "OTP sent to email for verification"}


@app.post("/auth/verify", response_model=TokenResponse, tags=["auth"], summary="Verify OTP & get token")
def verify_otp(payload: UserVerify, db: Session = Depends(get_db)):
    user = get_user_by_email(db, payload.email)
    if not user:
        raise NotFound("User not found")
    if user.is_verified:
        return TokenResponse(access_token=create_token(str(user.id)))
    _check_otp(user, payload.code)
    user.is_verified = True
    user.clear_otp()
    db.commit()
    logger.info("User %s verified", user.id)
    return TokenResponse(access_token=create_token(str(user.id)))


@app.post("/auth/login", response_model=TokenResponse, tags=["auth"], summary="Login (requires verified)")
def login(payload: UserLogin, db: Session = Depends(get_db)):
    user = get_user_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.password_hash):
        raise Unauthorized("Invalid credentials")
    if not user.is_active:
        raise Forbidden("Account disabled")
    if not user.is_verified:
        raise Forbidden("Email not verified")
    return TokenResponse(access_token=create_token(str(user.id)))


@app.post("/auth/forgot-password", tags=["auth"], summary="Request password reset (send OTP)")
def forgot_password(payload: ForgotPasswordRequest, db: Session = Depends(get_db)):
    user = get_user_by_email(db, payload.email)
    # same answer whether or not the account exists
    if user:
        code = generate_otp()
        user.set_otp(code)
        if not send_otp(user.email, code, purpose="Password Reset"):
            db.rollback()
            raise AppError("Could not send reset email")
        db.commit()
    return {"message": "If the account exists, a password reset code was sent"}


@app.post("/auth/reset-password", tags=["auth"], summary="Reset password using OTP")
def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    user = get_user_by_email(db, payload.email)
    if not user:
        raise ValidationError("No OTP pending")
    _check_otp(user, payload.code)
    user.password_hash = hash_password(payload.new_password)
    user.clear_otp()
    db.commit()
    return {"message": "Password reset successful"}


@app.get("/users/me", response_model=UserOut, tags=["users"], summary="Current user")
def me(current: UserOut = Depends(auth_user)):
    return current


@app.get("/health", tags=["meta"], summary="Health check")
def health():
    return {"status": "ok"}
