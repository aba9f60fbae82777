from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import date, datetime
from enum import Enum

class TaskStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"

class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"

class TaskCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.pending
    priority: TaskPriority = TaskPriority.medium
    estimated_hours: Optional[int] = Field(None, ge=1)
    required_skills: List[str] = Field(default_factory=list)
    complexity: int = Field(1, ge=1, le=5)
    due_date: Optional[date] = None
    project_id: int
    assigned_user_id: Optional[int] = None  # null leaves assignment to the scoring service
    created_by: int

class TaskUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    estimated_hours: Optional[int] = Field(None, ge=1)
    actual_hours: Optional[int] = Field(None, ge=0)
    required_skills: Optional[List[str]] = None
    complexity: Optional[int] = Field(None, ge=1, le=5)
    due_date: Optional[date] = None
    project_id: Optional[int] = None
    assigned_user_id: Optional[int] = None

class TaskAssignment(BaseModel):
    assigned_user_id: int

class TaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    estimated_hours: Optional[int] = None
    actual_hours: int = 0
    required_skills: List[str] = Field(default_factory=list)
    complexity: int = 1
    due_date: Optional[date] = None
    project_id: int
    assigned_user_id: Optional[int] = None
    created_by: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
