"""Account-scoped CRUD for pages, components and accounts."""

from __future__ import annotations

from typing import Any, Iterable

from pydantic import BaseModel

from tools_server.db.models import Account, Component, Page, User
from tools_server.repositories.sql_repository import SQLRepository
from tools_server.services.auth_service import ADMIN_ROLE, ROLE_PERMISSIONS


class RecordError(Exception):
    """Base exception for record workflows."""


class RecordNotFoundError(RecordError):
    """Raised when a record does not exist or belongs to another account."""


class AccountRequiredError(RecordError):
    """Raised when the caller is not attached to an account."""


class PermissionDeniedError(RecordError):
    """Raised when the caller's role does not allow the change."""


def changes(payload: BaseModel, *, nullable: Iterable[str] = ()) -> dict[str, Any]:
    """Fields explicitly sent in an update payload, minus ``id``.

    ``None`` is only kept for fields listed in ``nullable``.
    """
    allowed_none = set(nullable)
    values = payload.model_dump(exclude_unset=True, exclude={"id"})
    return {k: v for k, v in values.items() if v is not None or k in allowed_none}


def require_account(user: User) -> int:
    if user.account_id is None:
        raise AccountRequiredError("User is not attached to an account")
    return user.account_id


class RecordService:
    """Shared lookups for records owned by an account."""

    def __init__(self) -> None:
        self.repository = SQLRepository()

    def owned_page(self, account_id: int, page_id: int | None) -> Page | None:
        if page_id is None:
            return None
        page = self.repository.get_page(page_id)
        if not page or page.account_id != account_id:
            raise RecordNotFoundError(f"Page {page_id} not found")
        return page


class PageService(RecordService):
    def list_for(self, user: User) -> list[Page]:
        return self.repository.list_pages(require_account(user))

    def create(self, user: User, payload) -> Page:
        account_id = require_account(user)
        return self.repository.create_page(account_id, name=payload.name, layout=payload.layout)

    def update(self, user: User, payload) -> Page:
        account_id = require_account(user)
        self.owned_page(account_id, payload.id)
        return self.repository.update_page(payload.id, **changes(payload))


class ComponentService(RecordService):
    def list_for(self, user: User, page_id: int | None = None) -> list[Component]:
        return self.repository.list_components(require_account(user), page_id=page_id)

    def create(self, user: User, payload) -> Component:
        account_id = require_account(user)
        self.owned_page(account_id, payload.page_id)
        return self.repository.create_component(
            account_id,
            name=payload.name,
            type=payload.type,
            page_id=payload.page_id,
            properties=payload.properties,
        )

    def update(self, user: User, payload) -> Component:
        account_id = require_account(user)
        entity = self.repository.get_component(payload.id)
        if not entity or entity.account_id != account_id:
            raise RecordNotFoundError(f"Component {payload.id} not found")
        values = changes(payload, nullable={"page_id"})
        if values.get("page_id") is not None:
            self.owned_page(account_id, values["page_id"])
        return self.repository.update_component(payload.id, **values)


class AccountService(RecordService):
    def list_for(self, user: User) -> list[Account]:
        account = self.repository.get_account(user.account_id)
        return [account] if account else []

    def create(self, user: User, payload) -> Account:
        """Create an account and move the caller into it as its admin."""
        account = self.repository.create_account(payload.name)
        role = self.repository.ensure_role(ADMIN_ROLE, ROLE_PERMISSIONS[ADMIN_ROLE])
        self.repository.update_user(user.id, account_id=account.id, role_id=role.id)
        return account

    def update(self, user: User, payload) -> Account:
        account_id = require_account(user)
        if payload.id != account_id:
            raise RecordNotFoundError(f"Account {payload.id} not found")
        role = self.repository.get_role(user.role_id)
        if not role or role.name != ADMIN_ROLE:
            raise PermissionDeniedError("Only account admins can update the account")
        return self.repository.update_account(account_id, **changes(payload))
