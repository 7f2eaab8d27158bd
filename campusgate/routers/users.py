# campusgate/routers/users.py
"""Directory lookup for dashboards. Read only."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from campusgate import errors
from campusgate.database import get_db
from campusgate.schemas.user import UserOut
from campusgate.services.directory_service import get_user

router = APIRouter()


@router.get("/users/{user_id}", response_model=UserOut, summary="Get a directory user")
def read_user(user_id: str, db: Session = Depends(get_db)):
    user = get_user(db, user_id)
    if user is None:
        raise errors.EntityNotFound(f"User {user_id} not found")
    return user
