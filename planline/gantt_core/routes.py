"""
FastAPI routes for the Gantt engine.

Thin adapter over GanttService: request bodies in, records and snapshots out.
Engine errors are translated into canonical error envelopes with code
"gantt.<kind>".
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Dict, Iterator, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from planline.common.error_envelope import error_response
from planline.common.identity import RequestContext, get_request_context
from planline.gantt_core.errors import GanttError
from planline.gantt_core.models import (
    Dependency,
    DependencyType,
    Project,
    ProjectStatus,
    ProjectUpdate,
    Task,
    TaskStatus,
    TaskUpdate,
)
from planline.gantt_core.repository import ANY_PARENT
from planline.gantt_core.service import GanttService, get_gantt_service
from planline.gantt_core.snapshot import GanttSnapshot, ProjectStatistics

router = APIRouter(prefix="/gantt", tags=["gantt"])


def get_service() -> GanttService:
    return get_gantt_service()


@contextmanager
def _gantt_errors() -> Iterator[None]:
    try:
        yield
    except GanttError as exc:
        error_response(
            code=f"gantt.{exc.kind.value}",
            message=exc.message,
            status_code=exc.http_status,
            resource_kind=exc.resource_kind,
            details=exc.to_details(),
        )


class ProjectCreateRequest(BaseModel):
    name: str
    description: Optional[str] = None
    start_date: date
    end_date: date


class TaskCreateRequest(BaseModel):
    name: str
    description: Optional[str] = None
    start_date: date
    end_date: date
    parent_id: Optional[int] = None
    duration: Optional[int] = None


class ShiftRequest(BaseModel):
    days: int = Field(..., description="Calendar days to move the task by; negative moves it earlier")


class ProgressRequest(BaseModel):
    progress: float


class StatusRequest(BaseModel):
    status: TaskStatus


class DependencyCreateRequest(BaseModel):
    predecessor_id: int
    successor_id: int
    type: Optional[DependencyType] = None
    lag: Optional[int] = None


class DependencyUpdateRequest(BaseModel):
    type: Optional[DependencyType] = None
    lag: Optional[int] = None


class CreatedResponse(BaseModel):
    id: int


# --- Projects ---


@router.post("/projects", response_model=CreatedResponse, status_code=201)
def create_project(
    body: ProjectCreateRequest,
    service: GanttService = Depends(get_service),
):
    with _gantt_errors():
        project_id = service.create_project(
            body.name, body.start_date, body.end_date, description=body.description
        )
    return CreatedResponse(id=project_id)


@router.get("/projects", response_model=List[Project])
def list_projects(
    status_filter: Optional[ProjectStatus] = Query(None, alias="status"),
    name: Optional[str] = None,
    start_from: Optional[date] = None,
    start_to: Optional[date] = None,
    offset: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    service: GanttService = Depends(get_service),
):
    with _gantt_errors():
        return service.list_projects(
            status=status_filter,
            name_contains=name,
            start_from=start_from,
            start_to=start_to,
            offset=offset,
            limit=limit,
        )


@router.get("/projects/count", response_model=Dict[str, int])
def count_projects(
    status_filter: Optional[ProjectStatus] = Query(None, alias="status"),
    service: GanttService = Depends(get_service),
):
    return {"count": service.count_projects(status=status_filter)}


@router.get("/projects/{project_id}", response_model=Project)
def get_project(project_id: int, service: GanttService = Depends(get_service)):
    with _gantt_errors():
        return service.get_project(project_id)


@router.patch("/projects/{project_id}", response_model=Project)
def update_project(
    project_id: int,
    body: ProjectUpdate,
    service: GanttService = Depends(get_service),
):
    with _gantt_errors():
        return service.update_project(project_id, body)


@router.delete("/projects/{project_id}", status_code=204)
def delete_project(project_id: int, service: GanttService = Depends(get_service)):
    with _gantt_errors():
        service.delete_project(project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/projects/{project_id}/snapshot", response_model=GanttSnapshot)
def get_snapshot(
    project_id: int,
    ctx: RequestContext = Depends(get_request_context),
    service: GanttService = Depends(get_service),
):
    with _gantt_errors():
        return service.get_snapshot(project_id, timeout=ctx.timeout_seconds)


@router.get("/projects/{project_id}/critical-path", response_model=Dict[str, List[int]])
def get_critical_path(
    project_id: int,
    longest: bool = False,
    ctx: RequestContext = Depends(get_request_context),
    service: GanttService = Depends(get_service),
):
    with _gantt_errors():
        ids = service.critical_path(project_id, longest=longest, timeout=ctx.timeout_seconds)
    return {"task_ids": ids}


@router.get("/projects/{project_id}/statistics", response_model=ProjectStatistics)
def get_statistics(
    project_id: int,
    ctx: RequestContext = Depends(get_request_context),
    service: GanttService = Depends(get_service),
):
    with _gantt_errors():
        return service.project_statistics(project_id, timeout=ctx.timeout_seconds)


@router.post("/projects/{project_id}/recalculate", status_code=204)
def recalculate(project_id: int, service: GanttService = Depends(get_service)):
    with _gantt_errors():
        service.recalculate(project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Tasks ---


@router.post("/projects/{project_id}/tasks", response_model=CreatedResponse, status_code=201)
def create_task(
    project_id: int,
    body: TaskCreateRequest,
    service: GanttService = Depends(get_service),
):
    with _gantt_errors():
        task_id = service.create_task(
            project_id,
            body.name,
            body.start_date,
            body.end_date,
            description=body.description,
            parent_id=body.parent_id,
            duration=body.duration,
        )
    return CreatedResponse(id=task_id)


@router.get("/projects/{project_id}/tasks", response_model=List[Task])
def list_tasks(
    project_id: int,
    parent_id: Optional[int] = None,
    roots_only: bool = False,
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    name: Optional[str] = None,
    offset: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    service: GanttService = Depends(get_service),
):
    if parent_id is not None:
        parent = parent_id
    elif roots_only:
        parent = None
    else:
        parent = ANY_PARENT
    with _gantt_errors():
        return service.list_tasks(
            project_id,
            parent_id=parent,
            status=status_filter,
            name_contains=name,
            offset=offset,
            limit=limit,
        )


@router.get("/tasks/{task_id}", response_model=Task)
def get_task(task_id: int, service: GanttService = Depends(get_service)):
    with _gantt_errors():
        return service.get_task(task_id)


@router.patch("/tasks/{task_id}", response_model=Task)
def update_task(task_id: int, body: TaskUpdate, service: GanttService = Depends(get_service)):
    with _gantt_errors():
        return service.update_task(task_id, body)


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(task_id: int, service: GanttService = Depends(get_service)):
    with _gantt_errors():
        service.delete_task(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/tasks/{task_id}/shift", response_model=Task)
def shift_task(task_id: int, body: ShiftRequest, service: GanttService = Depends(get_service)):
    with _gantt_errors():
        return service.shift_task(task_id, body.days)


@router.put("/tasks/{task_id}/progress", response_model=Task)
def set_progress(task_id: int, body: ProgressRequest, service: GanttService = Depends(get_service)):
    with _gantt_errors():
        return service.set_progress(task_id, body.progress)


@router.put("/tasks/{task_id}/status", response_model=Task)
def set_status(task_id: int, body: StatusRequest, service: GanttService = Depends(get_service)):
    with _gantt_errors():
        return service.set_status(task_id, body.status)


# --- Dependencies ---


@router.post("/dependencies", response_model=CreatedResponse, status_code=201)
def add_dependency(body: DependencyCreateRequest, service: GanttService = Depends(get_service)):
    with _gantt_errors():
        dep_id = service.add_dependency(body.predecessor_id, body.successor_id, type=body.type, lag=body.lag)
    return CreatedResponse(id=dep_id)


@router.get("/dependencies/would-cycle", response_model=Dict[str, bool])
def would_cycle(
    predecessor_id: int,
    successor_id: int,
    service: GanttService = Depends(get_service),
):
    with _gantt_errors():
        return {"would_cycle": service.would_cycle(predecessor_id, successor_id)}


@router.patch("/dependencies/{dependency_id}", response_model=Dependency)
def update_dependency(
    dependency_id: int,
    body: DependencyUpdateRequest,
    service: GanttService = Depends(get_service),
):
    with _gantt_errors():
        return service.update_dependency(dependency_id, type=body.type, lag=body.lag)


@router.delete("/dependencies/{dependency_id}", status_code=204)
def remove_dependency(dependency_id: int, service: GanttService = Depends(get_service)):
    with _gantt_errors():
        service.remove_dependency(dependency_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
