from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, status

from taskhub.deps import get_assignment_coordinator, get_task_service
from taskhub.schemas.task import TaskAssignment, TaskCreate, TaskRead, TaskUpdate
from taskhub.services.assignment import AssignmentCoordinator
from taskhub.services.task_service import TaskService

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
    responses={404: {"description": "Not found"}},
)

@router.get("/", response_model=List[TaskRead])
def get_tasks(service: TaskService = Depends(get_task_service)):
    return service.get_all_tasks()

@router.post("/", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
def create_task(
    task_in: TaskCreate,
    background_tasks: BackgroundTasks,
    service: TaskService = Depends(get_task_service),
):
    # task.created goes out after the response is sent
    return service.create_task(task_in, schedule=background_tasks.add_task)

@router.get("/user/{user_id}", response_model=List[TaskRead])
def get_user_tasks(user_id: int, service: TaskService = Depends(get_task_service)):
    return service.get_tasks_by_user(user_id)

@router.get("/project/{project_id}", response_model=List[TaskRead])
def get_project_tasks(project_id: int, service: TaskService = Depends(get_task_service)):
    return service.get_tasks_by_project(project_id)

@router.get("/{task_id}", response_model=TaskRead)
def get_task(task_id: int, service: TaskService = Depends(get_task_service)):
    return service.get_task(task_id)

@router.put("/{task_id}", response_model=TaskRead)
def update_task(task_id: int, task_in: TaskUpdate, service: TaskService = Depends(get_task_service)):
    return service.update_task(task_id, task_in)

@router.delete("/{task_id}")
def delete_task(task_id: int, service: TaskService = Depends(get_task_service)):
    service.delete_task(task_id)
    return {"message": "Task deleted"}

@router.post("/{task_id}/assign", response_model=TaskRead)
def assign_task(
    task_id: int,
    assignment: TaskAssignment,
    coordinator: AssignmentCoordinator = Depends(get_assignment_coordinator),
):
    return coordinator.assign(task_id, assignment.assigned_user_id)
