"""Registration and login routes."""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from event_manager.database import get_db
from event_manager.schemas.auth import AuthResponse, LoginRequest, RegisterRequest
from event_manager.security import create_access_token
from event_manager.services import identity_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """Create an account and return a token for it."""
    user = identity_service.register(db, payload.name, payload.email, payload.password)
    return {"token": create_access_token(user.id), "user": user}


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = identity_service.verify_credential(db, payload.email, payload.password)
    return {"token": create_access_token(user.id), "user": user}
