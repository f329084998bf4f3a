import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db import get_db
from app.core.security import create_access_token, require_auth, verify_password
from app.models.company_user import CompanyUser

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)


class LoginIn(BaseModel):
    username: str
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    email = payload.username.strip().lower()
    member = db.scalar(select(CompanyUser).where(CompanyUser.email == email))

    if not member or not verify_password(payload.password, member.password_hash):
        logger.info("login failed user=%s", email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    token = create_access_token(sub=member.email)
    return TokenOut(access_token=token)


@router.get("/me")
def me(claims=Depends(require_auth)):
    return {"sub": claims.get("sub"), "iat": claims.get("iat"), "exp": claims.get("exp")}
