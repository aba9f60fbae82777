from typing import List

from fastapi import APIRouter, Depends, status

from taskhub.deps import get_user_service
from taskhub.schemas.user import UserCreate, UserRead, UserUpdate, UserWorkload
from taskhub.services.user_service import UserService

router = APIRouter(
    prefix="/users",
    tags=["users"],
    responses={404: {"description": "Not found"}},
)

@router.get("/", response_model=List[UserRead])
def get_users(service: UserService = Depends(get_user_service)):
    return service.get_all_users()

@router.post("/", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(user_in: UserCreate, service: UserService = Depends(get_user_service)):
    return service.create_user(user_in)

@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, service: UserService = Depends(get_user_service)):
    return service.get_user(user_id)

@router.get("/{user_id}/workload", response_model=UserWorkload)
def get_user_workload(user_id: int, service: UserService = Depends(get_user_service)):
    return service.get_user_workload(user_id)

@router.put("/{user_id}", response_model=UserRead)
def update_user(user_id: int, user_in: UserUpdate, service: UserService = Depends(get_user_service)):
    return service.update_user(user_id, user_in)

@router.delete("/{user_id}")
def delete_user(user_id: int, service: UserService = Depends(get_user_service)):
    service.delete_user(user_id)
    return {"message": "User deleted"}
