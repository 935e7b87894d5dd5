# bankdesk/auth/api.py
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bankdesk.auth.models import User
from bankdesk.auth.schemas import LoginIn, RegisterIn, RejectIn, TokenOut, UserOut
from bankdesk.auth.service import (
    attach_id_picture, authenticate_user, list_pending_users, register_user, review_user,
)
from bankdesk.files.models import StoredFile
from bankdesk.files.schemas import StoredFileOut
from bankdesk.files.service import FileService, get_file_service
from bankdesk.files.upload import ID_PICTURE_RULE, id_picture_upload
from bankdesk.shared.auth import create_access_token, get_current_user
from bankdesk.shared.db import get_db
from bankdesk.shared.errors import AuthenticationError, ValidationError
from bankdesk.shared.guard import require_approval, require_capability, require_pending_status
from bankdesk.shared.http import ok
from bankdesk.shared.roles import Capability

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])

def _user(u: User) -> dict:
    return UserOut.model_validate(u).model_dump(mode="json")

@router.post("/register", status_code=201)
def api_register(inb: RegisterIn, db: Session = Depends(get_db)):
    user = register_user(
        db,
        username=inb.username, email=inb.email, password=inb.password,
        first_name=inb.first_name, last_name=inb.last_name, branch_id=inb.branch_id,
    )
    return ok("Registration successful. Your account is pending approval.", {"user": _user(user)})

@router.post("/login")
def api_login(inb: LoginIn, db: Session = Depends(get_db)):
    user = authenticate_user(db, inb.login, inb.password)
    if not user:
        raise AuthenticationError("Invalid credentials")
    token = create_access_token(user.id, role=user.role)
    out = TokenOut(access_token=token, user=UserOut.model_validate(user))
    return ok("Login successful", out.model_dump(mode="json"))

@router.get("/profile")
def api_profile(user: User = Depends(get_current_user)):
    return ok("Profile retrieved", {"user": _user(user)})

@router.post("/upload-id-picture")
def api_upload_id_picture(
    user: User = Depends(require_pending_status),
    stored: Optional[StoredFile] = Depends(id_picture_upload),
    db: Session = Depends(get_db),
    files: FileService = Depends(get_file_service),
):
    if stored is None:
        raise ValidationError(f'Please upload an ID picture using the "{ID_PICTURE_RULE.field_name}" field')
    user = attach_id_picture(db, files, user, stored)
    return ok("ID picture uploaded successfully", {
        "file": StoredFileOut.model_validate(stored).model_dump(mode="json"),
        "id_picture_path": user.id_picture_path,
    })

@router.get("/branch-membership")
def api_branch_membership(user: User = Depends(require_approval)):
    return ok("Branch membership retrieved", {
        "branch_id": user.branch_id,
        "approval_status": user.approval_status,
        "reviewed_at": user.reviewed_at.isoformat() if user.reviewed_at else None,
    })

@router.get("/pending-users")
def api_pending_users(
    reviewer: User = Depends(require_capability(Capability.REVIEW_USERS)),
    db: Session = Depends(get_db),
):
    users = list_pending_users(db, reviewer)
    return ok("Pending users retrieved", {"users": [_user(u) for u in users], "count": len(users)})

@router.put("/users/{user_id}/approve")
def api_approve_user(
    user_id: int,
    reviewer: User = Depends(require_capability(Capability.REVIEW_USERS)),
    db: Session = Depends(get_db),
):
    user = review_user(db, reviewer, user_id, approve=True)
    return ok("User approved successfully", {"user": _user(user)})

@router.put("/users/{user_id}/reject")
def api_reject_user(
    user_id: int,
    inb: RejectIn | None = None,
    reviewer: User = Depends(require_capability(Capability.REVIEW_USERS)),
    db: Session = Depends(get_db),
):
    user = review_user(db, reviewer, user_id, approve=False, reason=inb.reason if inb else None)
    return ok("User rejected successfully", {"user": _user(user)})
