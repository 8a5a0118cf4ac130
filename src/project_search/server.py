"""
FastAPI server for the project store and search.

Every failure is reported as a tagged JSON body, ``{"error": ..., "code": ...}``,
with a matching HTTP status.
"""

import asyncio
import logging
from typing import Any, Callable, Literal, TypeVar

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .errors import ProjectSearchError
from .search import SearchResult
from .services import Services, build_services
from .storage import Project

logger = logging.getLogger(__name__)

app = FastAPI(title="ProjectSearch", description="Project postings with semantic search")

_services: Services | None = None

T = TypeVar("T")

_STATUS_BY_CODE = {
    "validation": 400,
    "empty_query": 400,
    "permission_denied": 403,
    "not_found": 404,
    "provider_unavailable": 503,
    "persistence": 500,
}


def get_services() -> Services:
    """Return the process-wide services, building them from the environment once."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


def set_services(services: Services | None) -> None:
    global _services
    _services = services


def reset_services() -> None:
    global _services
    if _services is not None:
        _services.close()
    _services = None


class ProjectCreateRequest(BaseModel):
    """Request model for project creation."""

    title: str
    budget: float
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    owner_id: int


class ProjectEditRequest(BaseModel):
    """Request model for a full project edit."""

    title: str
    budget: float
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    editor_id: int | None = None


class TagsRequest(BaseModel):
    """Request model for batch tag updates."""

    tags: list[str]


class SearchRequest(BaseModel):
    """Request model for search queries."""

    query: str
    mode: Literal["semantic", "keyword"] = "semantic"
    limit: int | None = None
    timeout: float | None = None


def _error_response(exc: ProjectSearchError) -> JSONResponse:
    status_code = _STATUS_BY_CODE.get(exc.code, 500)
    if status_code >= 500:
        logger.warning("Request failed: %s", exc)
    return JSONResponse({"error": str(exc), "code": exc.code}, status_code=status_code)


async def _run(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    return await asyncio.to_thread(fn, *args, **kwargs)


def _search_payload(result: SearchResult) -> dict[str, Any]:
    return {
        "query": result.query,
        "matched_by": result.matched_by,
        "fallback_reason": result.fallback_reason,
        "hits": [{**hit.project.to_dict(), "score": hit.score} for hit in result.hits],
    }


def _projects_payload(projects: list[Project]) -> dict[str, Any]:
    return {"projects": [project.to_dict() for project in projects]}


@app.post("/api/projects", status_code=201)
async def create_project(request: ProjectCreateRequest):
    """Create a project and return it."""
    store = get_services().store
    try:
        project = await _run(
            store.create_project,
            request.title,
            request.budget,
            request.description,
            request.tags,
            request.owner_id,
        )
    except ProjectSearchError as exc:
        return _error_response(exc)
    return project.to_dict()


@app.get("/api/projects/{project_id}")
async def get_project(project_id: int):
    store = get_services().store
    try:
        project = await _run(store.get_project_by_id, project_id)
    except ProjectSearchError as exc:
        return _error_response(exc)
    return project.to_dict()


@app.put("/api/projects/{project_id}")
async def edit_project(project_id: int, request: ProjectEditRequest):
    """Replace title, budget, description, and tags of a project."""
    store = get_services().store
    try:
        project = await _run(
            store.edit_project,
            project_id,
            request.title,
            request.budget,
            request.description,
            request.tags,
            request.editor_id,
        )
    except ProjectSearchError as exc:
        return _error_response(exc)
    return project.to_dict()


@app.delete("/api/projects/{project_id}")
async def delete_project(project_id: int):
    store = get_services().store
    try:
        await _run(store.delete_project, project_id)
    except ProjectSearchError as exc:
        return _error_response(exc)
    return {"deleted": project_id}


@app.post("/api/projects/{project_id}/tags")
async def add_tags(project_id: int, request: TagsRequest):
    store = get_services().store
    try:
        project = await _run(store.add_tags, project_id, request.tags)
    except ProjectSearchError as exc:
        return _error_response(exc)
    return project.to_dict()


@app.delete("/api/projects/{project_id}/tags")
async def remove_tags(project_id: int, request: TagsRequest):
    store = get_services().store
    try:
        project = await _run(store.remove_tags, project_id, request.tags)
    except ProjectSearchError as exc:
        return _error_response(exc)
    return project.to_dict()


@app.get("/api/owners/{owner_id}/projects")
async def list_owner_projects(owner_id: int):
    store = get_services().store
    try:
        projects = await _run(store.list_projects_for_owner, owner_id)
    except ProjectSearchError as exc:
        return _error_response(exc)
    return _projects_payload(projects)


@app.post("/api/search")
async def search_projects(request: SearchRequest):
    """Search the corpus semantically (with keyword fallback) or by keyword."""
    search = get_services().search
    try:
        if request.mode == "keyword":
            projects = await _run(search.search_keyword, request.query)
            if request.limit is not None:
                projects = projects[: max(request.limit, 0)]
            return {
                "query": request.query.strip(),
                "matched_by": "keyword",
                "fallback_reason": None,
                "hits": [{**project.to_dict(), "score": None} for project in projects],
            }
        result = await _run(
            search.search_semantic,
            request.query,
            timeout=request.timeout,
            limit=request.limit,
        )
    except ProjectSearchError as exc:
        return _error_response(exc)
    return _search_payload(result)


def run_server(host: str = "127.0.0.1", port: int = 8000):
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
