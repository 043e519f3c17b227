from typing import Any
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal.database import get_db
from portal.auth import schemas, models, security
from portal.auth.service import AuthService
from portal.auth.dependencies import get_current_active_user

router = APIRouter()

@router.post("/login", response_model=schemas.Token)
async def login_access_token(
    login_data: schemas.UserLogin,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    JSON login endpoint, accepts {"email": "...", "password": "..."}
    """
    auth_service = AuthService(db)
    user = await auth_service.authenticate_user(login_data.email, login_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Incorrect email or password",
        )
    elif not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")

    access_token = security.create_access_token(
        data={"sub": user.email, "role": user.role.value},
    )
    return {
        "access_token": access_token,
        "token_type": "bearer",
    }

@router.get("/me", response_model=schemas.UserResponse)
async def read_current_user(
    current_user: models.User = Depends(get_current_active_user),
):
    return current_user
