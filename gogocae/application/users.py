"""Application service for the user directory."""
from __future__ import annotations

from gogocae.core.errors import NotFound, SessionRequired
from gogocae.core.schema import UserPayload
from gogocae.domain import User, UserRole
from gogocae.infrastructure.datastore import USERS, Datastore


class UserService:
    """Profiles of requesters and managers. Authentication lives elsewhere."""

    def __init__(self, datastore: Datastore) -> None:
        self._datastore = datastore

    def register(self, payload: UserPayload) -> User:
        record = {
            "name": payload.name.strip(),
            "email": payload.email.strip(),
            "department": payload.department.strip(),
            "role": payload.role,
        }
        if payload.id:
            record["id"] = payload.id
        return User.from_row(self._datastore.insert(USERS, record))

    def get(self, user_id: str) -> User:
        try:
            return User.from_row(self._datastore.get(USERS, user_id))
        except NotFound:
            raise NotFound("User", user_id) from None

    def list_users(self, role: UserRole | str | None = None) -> list[User]:
        filters = {"role": UserRole(role).value} if role else None
        rows = self._datastore.query(USERS, filters, order_by="name")
        return [User.from_row(row) for row in rows]

    def managers(self) -> list[User]:
        return self.list_users(UserRole.MANAGER)

    def resolve_session(self, user_id: str | None) -> User:
        """Turn the caller's user id into a profile; an unknown id is an expired session."""

        if not user_id:
            raise SessionRequired()
        try:
            return self.get(user_id)
        except NotFound:
            raise SessionRequired() from None
