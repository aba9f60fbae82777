from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskhub.models.user import User


class UserRepository:
    def __init__(self, session: Session):
        self.session = session

    def all(self) -> List[User]:
        return list(self.session.scalars(select(User).order_by(User.id)))

    def find(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        return self.session.scalars(select(User).where(User.email == email)).first()

    def create(self, data: Dict[str, Any]) -> User:
        user = User(**data)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def update(self, user: User, data: Dict[str, Any]) -> User:
        for field, value in data.items():
            setattr(user, field, value)
        self.session.commit()
        self.session.refresh(user)
        return user

    def delete(self, user: User) -> bool:
        self.session.delete(user)
        self.session.commit()
        return True

    def workload(self, user: User) -> Dict[str, Any]:
        # Advisory only: nothing checks workload against max_workload on assignment.
        usage = (user.workload / user.max_workload) * 100 if user.max_workload > 0 else 0
        return {
            "user_id": user.id,
            "current_workload": user.workload,
            "max_workload": user.max_workload,
            "usage_percentage": round(usage, 2),
        }
