from uuid import UUID

from pydantic import BaseModel

ROLE_ADMIN = "admin"
ROLE_TEACHER = "teacher"
ROLE_STUDENT = "student"


class CurrentUser(BaseModel):
    """Caller identity supplied by the external identity provider (decoded from the bearer token)."""

    id: UUID
    role: str
