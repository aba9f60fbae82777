from typing import List

from taskhub.core.cache import CacheKey, CacheService, KeyKind, TTLCategory
from taskhub.core.exceptions import ProjectNotFound
from taskhub.repositories.project_repository import ProjectRepository
from taskhub.schemas.project import ProjectCreate, ProjectRead, ProjectUpdate


class ProjectService:
    def __init__(self, projects: ProjectRepository, cache: CacheService):
        self.projects = projects
        self.cache = cache

    def get_all_projects(self) -> List[ProjectRead]:
        data = self.cache.remember_list(
            CacheKey.projects(),
            TTLCategory.LISTS,
            lambda: [ProjectRead.model_validate(p).model_dump(mode="json") for p in self.projects.all()],
        )
        return [ProjectRead.model_validate(p) for p in data]

    def get_project(self, project_id: int) -> ProjectRead:
        def load():
            project = self.projects.find(project_id)
            return ProjectRead.model_validate(project).model_dump(mode="json") if project else None

        data = self.cache.remember_item(KeyKind.PROJECT, project_id, TTLCategory.ITEMS, load)
        if data is None:
            raise ProjectNotFound(project_id)
        return ProjectRead.model_validate(data)

    def create_project(self, data: ProjectCreate) -> ProjectRead:
        project = self.projects.create(data.model_dump())
        self.cache.invalidate_project(project.id)
        return ProjectRead.model_validate(project)

    def update_project(self, project_id: int, data: ProjectUpdate) -> ProjectRead:
        project = self.projects.find(project_id)
        if project is None:
            raise ProjectNotFound(project_id)

        project = self.projects.update(project, data.model_dump(exclude_unset=True))
        self.cache.invalidate_project(project.id)
        return ProjectRead.model_validate(project)

    def delete_project(self, project_id: int) -> bool:
        project = self.projects.find(project_id)
        if project is None:
            raise ProjectNotFound(project_id)

        result = self.projects.delete(project)
        if result:
            self.cache.invalidate_project(project_id, deleted=True)
        return result
