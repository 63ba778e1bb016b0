"""User API routes: attendee picker and the caller's own profile."""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from event_manager.database import get_db
from event_manager.deps import get_current_user_id
from event_manager.schemas.user import ProfileUpdate, UserOut, UserSummary
from event_manager.services import identity_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[UserSummary])
def list_users(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """Every user except the caller."""
    return identity_service.list_other_users(db, user_id)


@router.get("/profile", response_model=UserOut)
def get_profile(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return identity_service.get_user(db, user_id)


@router.put("/profile", response_model=UserOut)
def update_profile(
    payload: ProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Partial update of the caller's name, email or profile picture."""
    return identity_service.update_profile(db, user_id, payload.model_dump(exclude_unset=True))
