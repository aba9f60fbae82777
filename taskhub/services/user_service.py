from typing import List

from taskhub.core.cache import CacheKey, CacheService, KeyKind, TTLCategory
from taskhub.core.exceptions import DuplicateEmailError, UserNotFound
from taskhub.repositories.user_repository import UserRepository
from taskhub.schemas.user import UserCreate, UserRead, UserUpdate, UserWorkload


class UserService:
    def __init__(self, users: UserRepository, cache: CacheService):
        self.users = users
        self.cache = cache

    def get_all_users(self) -> List[UserRead]:
        data = self.cache.remember_list(
            CacheKey.users(),
            TTLCategory.LISTS,
            lambda: [UserRead.model_validate(u).model_dump(mode="json") for u in self.users.all()],
        )
        return [UserRead.model_validate(u) for u in data]

    def get_user(self, user_id: int) -> UserRead:
        def load():
            user = self.users.find(user_id)
            return UserRead.model_validate(user).model_dump(mode="json") if user else None

        data = self.cache.remember_item(KeyKind.USER, user_id, TTLCategory.ITEMS, load)
        if data is None:
            raise UserNotFound(user_id)
        return UserRead.model_validate(data)

    def get_user_workload(self, user_id: int) -> UserWorkload:
        def load():
            user = self.users.find(user_id)
            return self.users.workload(user) if user else None

        data = self.cache.remember_item(KeyKind.USER_WORKLOAD, user_id, TTLCategory.WORKLOAD, load)
        if data is None:
            raise UserNotFound(user_id)
        return UserWorkload.model_validate(data)

    def create_user(self, data: UserCreate) -> UserRead:
        if self.users.find_by_email(data.email) is not None:
            raise DuplicateEmailError(data.email)
        user = self.users.create(data.model_dump())
        self.cache.invalidate_user(user.id)
        return UserRead.model_validate(user)

    def update_user(self, user_id: int, data: UserUpdate) -> UserRead:
        user = self.users.find(user_id)
        if user is None:
            raise UserNotFound(user_id)

        changes = data.model_dump(exclude_unset=True)
        if "email" in changes and changes["email"] != user.email:
            if self.users.find_by_email(changes["email"]) is not None:
                raise DuplicateEmailError(changes["email"])

        user = self.users.update(user, changes)
        self.cache.invalidate_user(user.id)
        return UserRead.model_validate(user)

    def delete_user(self, user_id: int) -> bool:
        user = self.users.find(user_id)
        if user is None:
            raise UserNotFound(user_id)

        result = self.users.delete(user)
        if result:
            self.cache.invalidate_user(user_id)
        return result
