from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from lawyer_booking.auth import jwt_handler
from lawyer_booking.auth.actor import Actor, ActorRole
from lawyer_booking.database import get_db
from lawyer_booking.models.user import User

security = HTTPBearer()


def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Actor:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject or not str(subject).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = db.query(User).filter(User.id == int(subject)).first()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")

    try:
        role = ActorRole((user.role or "").strip().lower())
    except ValueError as exc:
        raise HTTPException(status_code=403, detail="Unknown user role") from exc

    return Actor(id=user.id, role=role)


def require_role(*roles: ActorRole):
    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(status_code=403, detail="You are not allowed to perform this action.")
        return actor

    return dependency
