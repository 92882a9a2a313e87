"""High-level data access helpers backed by SQLAlchemy."""
from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, delete

from tools_server.db.models import (
    Account,
    Component,
    Page,
    Query,
    Role,
    User,
    UserSession,
)
from tools_server.db.session import get_session


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SQLRepository:
    """CRUD helpers wrapping the SQLAlchemy session."""

    # -------------------------- generic --------------------------
    def _create(self, model, **values: Any):
        now = _now()
        entity = model(created_at=now, updated_at=now, **values)
        with get_session() as session:
            session.add(entity)
            session.commit()
            session.refresh(entity)
            return entity

    def _update(self, model, entity_id: int, values: dict[str, Any]):
        with get_session() as session:
            entity = session.get(model, entity_id)
            if not entity:
                return None
            for field, value in values.items():
                setattr(entity, field, value)
            entity.updated_at = _now()
            session.commit()
            session.refresh(entity)
            return entity

    def _list(self, model, *criteria) -> list:
        with get_session() as session:
            stmt = select(model).where(*criteria).order_by(model.id)
            return list(session.execute(stmt).scalars().all())

    # -------------------------- accounts --------------------------
    def get_account(self, account_id: int | None) -> Optional[Account]:
        if account_id is None:
            return None
        with get_session() as session:
            return session.get(Account, account_id)

    def get_account_by_domain(self, domain: str) -> Optional[Account]:
        with get_session() as session:
            stmt = select(Account).where(Account.domain == domain)
            return session.execute(stmt).scalar_one_or_none()

    def create_account(self, name: str, domain: str | None = None) -> Account:
        return self._create(Account, name=name, domain=domain)

    def update_account(self, account_id: int, **values: Any) -> Optional[Account]:
        return self._update(Account, account_id, values)

    def count_account_users(self, account_id: int) -> int:
        with get_session() as session:
            stmt = select(User.id).where(User.account_id == account_id)
            return len(session.execute(stmt).all())

    # -------------------------- roles --------------------------
    def get_role(self, role_id: int | None) -> Optional[Role]:
        if role_id is None:
            return None
        with get_session() as session:
            return session.get(Role, role_id)

    def ensure_role(self, name: str, permissions: list[str]) -> Role:
        with get_session() as session:
            role = session.execute(select(Role).where(Role.name == name)).scalar_one_or_none()
            if role:
                return role
        return self._create(Role, name=name, permissions=list(permissions))

    # -------------------------- users --------------------------
    def get_user(self, user_id: int) -> Optional[User]:
        with get_session() as session:
            return session.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with get_session() as session:
            stmt = select(User).where(User.email == email)
            return session.execute(stmt).scalar_one_or_none()

    def get_user_by_provider(self, provider: str, provider_user_id: str) -> Optional[User]:
        with get_session() as session:
            stmt = select(User).where(User.provider == provider, User.provider_user_id == provider_user_id)
            return session.execute(stmt).scalar_one_or_none()

    def create_user(self, **values: Any) -> User:
        return self._create(User, **values)

    def update_user(self, user_id: int, **values: Any) -> Optional[User]:
        return self._update(User, user_id, values)

    # -------------------------- sessions --------------------------
    def create_user_session(self, user_id: int, expires_at: datetime) -> str:
        token = secrets.token_urlsafe(32)
        with get_session() as session:
            session.add(UserSession(token=token, user_id=user_id, expires_at=expires_at, created_at=_now()))
            session.commit()
        return token

    def get_user_session(self, token: str) -> Optional[UserSession]:
        with get_session() as session:
            return session.get(UserSession, token)

    def delete_user_session(self, token: str) -> None:
        with get_session() as session:
            session.execute(delete(UserSession).where(UserSession.token == token))
            session.commit()

    # -------------------------- pages --------------------------
    def list_pages(self, account_id: int) -> list[Page]:
        return self._list(Page, Page.account_id == account_id)

    def get_page(self, page_id: int) -> Optional[Page]:
        with get_session() as session:
            return session.get(Page, page_id)

    def create_page(self, account_id: int, **values: Any) -> Page:
        return self._create(Page, account_id=account_id, **values)

    def update_page(self, page_id: int, **values: Any) -> Optional[Page]:
        return self._update(Page, page_id, values)

    # -------------------------- components --------------------------
    def list_components(self, account_id: int, page_id: int | None = None) -> list[Component]:
        criteria = [Component.account_id == account_id]
        if page_id is not None:
            criteria.append(Component.page_id == page_id)
        return self._list(Component, *criteria)

    def get_component(self, component_id: int) -> Optional[Component]:
        with get_session() as session:
            return session.get(Component, component_id)

    def create_component(self, account_id: int, **values: Any) -> Component:
        return self._create(Component, account_id=account_id, **values)

    def update_component(self, component_id: int, **values: Any) -> Optional[Component]:
        return self._update(Component, component_id, values)

    # -------------------------- queries --------------------------
    def list_queries(self, account_id: int, page_id: int | None = None) -> list[Query]:
        criteria = [Query.account_id == account_id]
        if page_id is not None:
            criteria.append(Query.page_id == page_id)
        return self._list(Query, *criteria)

    def get_query(self, query_id: int) -> Optional[Query]:
        with get_session() as session:
            return session.get(Query, query_id)

    def create_query(self, account_id: int, **values: Any) -> Query:
        return self._create(Query, account_id=account_id, **values)

    def update_query(self, query_id: int, **values: Any) -> Optional[Query]:
        return self._update(Query, query_id, values)
