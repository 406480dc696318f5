from __future__ import annotations

from collections.abc import Collection

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from hrms.domain.models import User

SEARCH_LIMIT = 20


class UserDirectory:
    """Read access to registered users; account management lives elsewhere."""

    def find_by_id(self, session: Session, user_id: str) -> User | None:
        return session.get(User, user_id)

    def search(
        self,
        session: Session,
        query: str | None,
        *,
        exclude_ids: Collection[str] = (),
        limit: int = SEARCH_LIMIT,
    ) -> list[User]:
        statement = select(User).where(col(User.is_super_admin).is_(False))
        if exclude_ids:
            statement = statement.where(col(User.id).not_in(list(exclude_ids)))
        needle = (query or "").strip().lower()
        if needle:
            statement = statement.where(
                or_(
                    func.lower(User.email).contains(needle, autoescape=True),
                    func.lower(User.display_name).contains(needle, autoescape=True),
                )
            )
        statement = statement.order_by(col(User.updated_at).desc()).limit(limit)
        return list(session.exec(statement).all())
