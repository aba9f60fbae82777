from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from taskhub.models.project import Project


class ProjectRepository:
    def __init__(self, session: Session):
        self.session = session

    def all(self) -> List[Project]:
        return list(self.session.scalars(select(Project).order_by(Project.id)))

    def find(self, project_id: int) -> Optional[Project]:
        return self.session.get(Project, project_id)

    def create(self, data: Dict[str, Any]) -> Project:
        project = Project(**data)
        self.session.add(project)
        self.session.commit()
        self.session.refresh(project)
        return project

    def update(self, project: Project, data: Dict[str, Any]) -> Project:
        for field, value in data.items():
            setattr(project, field, value)
        self.session.commit()
        self.session.refresh(project)
        return project

    def delete(self, project: Project) -> bool:
        self.session.delete(project)
        self.session.commit()
        return True
