import logging
from datetime import datetime, timezone

import bcrypt
from sqlalchemy import select, or_
from sqlalchemy.orm import Session

from bankdesk.auth.models import ApprovalStatus, User
from bankdesk.files.models import FileType, StoredFile
from bankdesk.files.service import FileService
from bankdesk.shared.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from bankdesk.shared.roles import Capability, Role, as_role, has_capability

logger = logging.getLogger(__name__)

def _hash(pw: str) -> str:
    return bcrypt.hashpw(pw.encode(), bcrypt.gensalt()).decode()

def _verify(pw: str, ph: str) -> bool:
    try: return bcrypt.checkpw(pw.encode(), ph.encode())
    except ValueError: return False

def register_user(
    db: Session,
    *,
    username: str,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    branch_id: int | None = None,
    role: Role = Role.CUSTOMER,
) -> User:
    email = email.lower().strip()
    username = username.strip()
    taken = db.scalar(select(User).where(or_(User.email == email, User.username == username)))
    if taken:
        field = "Email" if taken.email == email else "Username"
        raise ConflictError(f"{field} already exists")
    u = User(
        username=username, email=email, password_hash=_hash(password),
        first_name=first_name.strip(), last_name=last_name.strip(),
        role=role.value,
        approval_status=ApprovalStatus.PENDING.value,
        pending_branch_id=branch_id,
    )
    db.add(u); db.commit(); db.refresh(u)
    logger.info("registered user %s (%s), pending branch %s", u.id, u.username, branch_id)
    return u

def authenticate_user(db: Session, login: str, password: str) -> User | None:
    key = login.strip()
    u = db.scalar(select(User).where(or_(User.username == key, User.email == key.lower())))
    if not u or not u.is_active or not _verify(password, u.password_hash):
        return None
    return u

def attach_id_picture(db: Session, files: FileService, user: User, stored: StoredFile) -> User:
    """
    Point the user at a freshly stored ID picture. Older ID pictures are
    removed best-effort; a failed cleanup never fails the replacement.
    """
    user.id_picture_path = stored.filename
    db.commit()
    db.refresh(user)
    files.delete_user_file(db, user.id, FileType.ID_PICTURE, keep=stored.filename)
    return user

def clear_file_references(db: Session, filename: str) -> int:
    users = db.scalars(select(User).where(User.id_picture_path == filename)).all()
    for u in users:
        u.id_picture_path = None
    if users:
        db.commit()
    return len(users)

def _reviewable_by(reviewer: User, user: User) -> bool:
    if as_role(reviewer.role) is Role.ADMIN:
        return True
    return reviewer.branch_id is not None and reviewer.branch_id == user.pending_branch_id

def list_pending_users(db: Session, reviewer: User) -> list[User]:
    q = select(User).where(User.approval_status == ApprovalStatus.PENDING.value)
    if as_role(reviewer.role) is not Role.ADMIN:
        if reviewer.branch_id is None:
            return []
        q = q.where(User.pending_branch_id == reviewer.branch_id)
    return list(db.scalars(q.order_by(User.created_at, User.id)).all())

def review_user(
    db: Session, reviewer: User, user_id: int, *, approve: bool, reason: str | None = None,
) -> User:
    """
    Approve or reject a pending user. Both outcomes are terminal: there is no
    path back to ``pending``.
    """
    if not has_capability(reviewer.role, Capability.REVIEW_USERS):
        raise AuthorizationError("Insufficient permissions")
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if user.approval_status != ApprovalStatus.PENDING.value:
        raise ValidationError("User is not pending approval")
    if not _reviewable_by(reviewer, user):
        raise AuthorizationError("Not authorized to review users for this branch")

    if approve:
        if user.pending_branch_id is None:
            raise ValidationError("User has not requested a branch")
        user.branch_id = user.pending_branch_id
        user.approval_status = ApprovalStatus.APPROVED.value
        user.rejection_reason = None
    else:
        user.approval_status = ApprovalStatus.REJECTED.value
        user.rejection_reason = (reason or "").strip() or "No reason provided"
    user.pending_branch_id = None
    user.reviewed_by = reviewer.id
    user.reviewed_at = datetime.now(timezone.utc)
    db.commit(); db.refresh(user)

    logger.info("user %s %s by %s", user.id, user.approval_status, reviewer.id)
    return user
