from typing import Literal

from bankdesk.auth.models import User
from bankdesk.files.models import StoredFile
from bankdesk.shared.errors import AuthorizationError
from bankdesk.shared.roles import Capability, has_capability

Action = Literal["view", "delete"]

_ANY_FILE = {
    "view": Capability.VIEW_ANY_FILE,
    "delete": Capability.DELETE_ANY_FILE,
}


def _allowed(actor: User, stored: StoredFile, action: Action) -> bool:
    # ownership comes from the registry row, never from the filename
    return has_capability(actor.role, _ANY_FILE[action]) or actor.id == stored.uploaded_by


def authorize_file(actor: User, stored: StoredFile, action: Action) -> None:
    if not _allowed(actor, stored, action):
        raise AuthorizationError(f"Not authorized to {action} this file")
