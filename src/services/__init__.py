from src.services import (
    assignment_service,
    completion_service,
    dependency_service,
    status_service,
    team_service,
)


__all__ = [
    "assignment_service",
    "completion_service",
    "dependency_service",
    "status_service",
    "team_service",
]
