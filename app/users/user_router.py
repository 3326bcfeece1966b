from fastapi import APIRouter, Depends, Response
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.database import get_db
from app.core.security import get_current_user_id, set_auth_cookie, clear_auth_cookie
from app.users.user_schemas import (
    SignupRequest, SigninRequest, ProfileUpdate, PasswordChange,
    ForgotPasswordRequest, ResetPasswordRequest, AccountDelete
)
from app.users import user_service as service

router = APIRouter(prefix="/users", tags=["Users"])

# ==================== AUTH ====================

@router.post("/signup", status_code=201)
async def signup(
    data: SignupRequest,
    response: Response,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Create a new account

    - Email must be unique (400 if taken)
    - Sets the auth cookie and also returns the token
    """
    result = await service.create_user(db, data)
    set_auth_cookie(response, result["token"])
    return {
        "status": "success",
        "message": "Account created successfully",
        "data": result
    }


@router.post("/signin")
async def signin(
    data: SigninRequest,
    response: Response,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    result = await service.authenticate_user(db, data.email, data.password)
    set_auth_cookie(response, result["token"])
    return {
        "status": "success",
        "message": "Logged in successfully",
        "data": result
    }


@router.post("/signout")
async def signout(response: Response):
    clear_auth_cookie(response)
    return {"status": "success", "message": "Logged out successfully"}

# ==================== PROFILE ====================

@router.get("/profile")
async def get_profile(
    user_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Current user's profile with enrolled course summaries"""
    user = await service.get_profile(db, user_id)
    return {"status": "success", "data": {"user": user}}


@router.patch("/profile")
async def update_profile(
    data: ProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    user = await service.update_profile(db, user_id, data)
    return {
        "status": "success",
        "message": "Profile updated successfully",
        "data": {"user": user}
    }


@router.patch("/password")
async def change_password(
    data: PasswordChange,
    user_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await service.change_password(db, user_id, data.current_password, data.new_password)
    return {"status": "success", "message": "Password changed successfully"}

# ==================== PASSWORD RESET ====================

@router.post("/forgot-password")
async def forgot_password(
    data: ForgotPasswordRequest,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Issue a password reset token (valid 10 minutes by default).
    There is no mailer, so the token and reset URL come back in the response.
    """
    result = await service.create_password_reset(db, data.email)
    return {
        "status": "success",
        "message": "Password reset token sent to email",
        "data": result
    }


@router.post("/reset-password/{token}")
async def reset_password(
    token: str,
    data: ResetPasswordRequest,
    response: Response,
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    jwt_token = await service.reset_password(db, token, data.password)
    set_auth_cookie(response, jwt_token)
    return {
        "status": "success",
        "message": "Password reset successfully",
        "data": {"token": jwt_token}
    }

# ==================== ACCOUNT ====================

@router.delete("/account")
async def delete_account(
    data: AccountDelete,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Delete the account after re-checking the password"""
    await service.delete_account(db, user_id, data.password)
    clear_auth_cookie(response)
    return {"status": "success", "message": "Account deleted successfully"}
