from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.database import get_db
from backend.models import Doctor, Patient

security = HTTPBearer()


@dataclass
class CurrentUser:
    id: int
    role: str
    record: Doctor | Patient

    @property
    def is_doctor(self) -> bool:
        return self.role == jwt_handler.ROLE_DOCTOR

    @property
    def is_patient(self) -> bool:
        return self.role == jwt_handler.ROLE_PATIENT


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> CurrentUser:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Not authorized to access this route") from exc

    subject = payload.get("sub")
    role = payload.get("role")
    if not subject or role not in (jwt_handler.ROLE_DOCTOR, jwt_handler.ROLE_PATIENT):
        raise HTTPException(status_code=401, detail="Invalid token subject")

    try:
        user_id = int(subject)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid token subject") from exc

    model = Doctor if role == jwt_handler.ROLE_DOCTOR else Patient
    record = db.query(model).filter(model.id == user_id).first()
    if record is None:
        raise HTTPException(status_code=401, detail="No user found with this token")
    return CurrentUser(id=record.id, role=role, record=record)


def require_role(*roles: str):
    def dependency(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User role {current_user.role} is not authorized to access this route",
            )
        return current_user

    return dependency


require_doctor = require_role(jwt_handler.ROLE_DOCTOR)
require_patient = require_role(jwt_handler.ROLE_PATIENT)
