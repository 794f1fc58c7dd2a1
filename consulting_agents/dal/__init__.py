from __future__ import annotations

from dataclasses import dataclass

from motor.motor_asyncio import AsyncIOMotorDatabase

from .client_dal import ClientDAL
from .employee_dal import EmployeeDAL
from .project_dal import ProjectDAL, ProjectManagementDAL
from .task_dal import TaskDAL, task_id_from_description
from .testing_dal import TestingResultDAL
from .deployment_dal import DeploymentDAL
from .support_dal import SupportTicketDAL
from .document_dal import DocumentDAL


@dataclass
class Store:
    """Every DAL an agent may need, bound to one database."""

    clients: ClientDAL
    employees: EmployeeDAL
    projects: ProjectDAL
    project_management: ProjectManagementDAL
    tasks: TaskDAL
    testing_results: TestingResultDAL
    deployments: DeploymentDAL
    support: SupportTicketDAL
    documents: DocumentDAL

    @classmethod
    def from_db(cls, db: AsyncIOMotorDatabase) -> "Store":
        return cls(
            clients=ClientDAL(db),
            employees=EmployeeDAL(db),
            projects=ProjectDAL(db),
            project_management=ProjectManagementDAL(db),
            tasks=TaskDAL(db),
            testing_results=TestingResultDAL(db),
            deployments=DeploymentDAL(db),
            support=SupportTicketDAL(db),
            documents=DocumentDAL(db),
        )

    async def ensure_indexes(self) -> None:
        await self.clients.ensure_indexes()
        await self.projects.ensure_indexes()
        await self.project_management.ensure_indexes()
        await self.tasks.ensure_indexes()
        await self.testing_results.ensure_indexes()
        await self.deployments.ensure_indexes()
        await self.support.ensure_indexes()
        await self.documents.ensure_indexes()


__all__ = [
    "Store",
    "ClientDAL",
    "EmployeeDAL",
    "ProjectDAL",
    "ProjectManagementDAL",
    "TaskDAL",
    "TestingResultDAL",
    "DeploymentDAL",
    "SupportTicketDAL",
    "DocumentDAL",
    "task_id_from_description",
]
