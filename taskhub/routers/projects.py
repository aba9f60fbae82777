from typing import List

from fastapi import APIRouter, Depends, status

from taskhub.deps import get_project_service
from taskhub.schemas.project import ProjectCreate, ProjectRead, ProjectUpdate
from taskhub.services.project_service import ProjectService

router = APIRouter(
    prefix="/projects",
    tags=["projects"],
    responses={404: {"description": "Not found"}},
)

@router.get("/", response_model=List[ProjectRead])
def get_projects(service: ProjectService = Depends(get_project_service)):
    return service.get_all_projects()

@router.post("/", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(project_in: ProjectCreate, service: ProjectService = Depends(get_project_service)):
    return service.create_project(project_in)

@router.get("/{project_id}", response_model=ProjectRead)
def get_project(project_id: int, service: ProjectService = Depends(get_project_service)):
    return service.get_project(project_id)

@router.put("/{project_id}", response_model=ProjectRead)
def update_project(project_id: int, project_in: ProjectUpdate, service: ProjectService = Depends(get_project_service)):
    return service.update_project(project_id, project_in)

@router.delete("/{project_id}")
def delete_project(project_id: int, service: ProjectService = Depends(get_project_service)):
    service.delete_project(project_id)
    return {"message": "Project deleted"}
