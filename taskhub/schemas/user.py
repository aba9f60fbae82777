from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime
from enum import Enum

class UserRole(str, Enum):
    admin = "admin"
    manager = "manager"
    user = "user"

class UserCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    role: UserRole = UserRole.user
    skills: List[str] = Field(default_factory=list)
    workload: int = Field(0, ge=0)
    max_workload: int = Field(40, gt=0)

class UserUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, min_length=3, max_length=255)
    role: Optional[UserRole] = None
    skills: Optional[List[str]] = None
    workload: Optional[int] = Field(None, ge=0)
    max_workload: Optional[int] = Field(None, gt=0)

class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: UserRole
    skills: List[str] = Field(default_factory=list)
    workload: int = 0
    max_workload: int
    created_at: Optional[datetime] = None

class UserWorkload(BaseModel):
    user_id: int
    current_workload: int
    max_workload: int
    usage_percentage: float
