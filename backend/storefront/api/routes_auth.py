from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from storefront.api.deps import get_caller
from storefront.db import get_db
from storefront.schemas.auth_schema import AuthOut, LoginIn, RegisterIn, UserOut
from storefront.services.auth_service import AuthService, Caller

router = APIRouter(tags=["auth"])


@router.post("/auth/register", status_code=status.HTTP_201_CREATED, summary="Register")
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    svc = AuthService(db)
    user, token = svc.register(
        payload.email, payload.password, payload.first_name, payload.last_name
    )
    return {
        "data": AuthOut(token=token, user=UserOut.model_validate(user)),
        "message": "User registered successfully",
    }


@router.post("/auth/login", summary="Log in")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    svc = AuthService(db)
    user, token = svc.login(payload.email, payload.password)
    return {
        "data": AuthOut(token=token, user=UserOut.model_validate(user)),
        "message": "Login successful",
    }


@router.get("/api/profile", summary="Current user profile")
def profile(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    user = AuthService(db).profile(caller)
    return {"data": UserOut.model_validate(user)}
