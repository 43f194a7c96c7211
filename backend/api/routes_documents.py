"""
Routes du workflow documentaire: création, lecture, édition, versions et décisions.

Toutes les routes sont bornées à la company de l'appelant (claims du token). Un document
d'une autre company répond 404, exactement comme un document absent.
"""

from fastapi import APIRouter, Depends, Query, Response

from backend.api.deps import current_user_dep, get_company_id, workflow_scope
from backend.api.schemas import (
    DecisionRequest,
    DocumentCreateRequest,
    DocumentPage,
    DocumentResponse,
    DocumentUpdateRequest,
    DocumentVersionResponse,
    SectionCreateRequest,
    SectionUpdateRequest,
    VersionCreateRequest,
)
from backend.core.container import container
from backend.core.http_constants import HTTP_CREATED, HTTP_NO_CONTENT
from backend.domain.auth import TokenData
from backend.domain.entitlements import require_approver

router = APIRouter(prefix="/documents", tags=["documents"])
company_dep = Depends(get_company_id)


def _out(document) -> DocumentResponse:
    return DocumentResponse.model_validate(document)


@router.post("", response_model=DocumentResponse, status_code=HTTP_CREATED)
def create_document(
    payload: DocumentCreateRequest,
    user: TokenData = current_user_dep,
    company_id: str = company_dep,
):
    """Crée un document v1 en `draft` (et son instantané de version 1)."""
    with workflow_scope() as workflow:
        document = workflow.create(
            payload.project_id,
            payload.title,
            payload.content,
            user.sub,
            company_id=company_id,
        )
    return _out(document)


@router.get("", response_model=DocumentPage)
def list_documents(
    status: str | None = None,
    created_by: str | None = None,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    company_id: str = company_dep,
):
    """Liste paginée des documents de la company (filtres `status`, `created_by`)."""
    size = limit or container.settings.DEFAULT_PAGE_SIZE
    with workflow_scope() as workflow:
        items, total = workflow.list_for_company(
            company_id, status=status, created_by=created_by, page=page, limit=size
        )
    return DocumentPage(items=[_out(d) for d in items], total=total, page=page, limit=size)


@router.get("/project/{project_id}", response_model=list[DocumentResponse])
def list_project_documents(project_id: str, company_id: str = company_dep):
    with workflow_scope() as workflow:
        documents = workflow.list_by_project(project_id, company_id)
    return [_out(d) for d in documents]


@router.get("/{document_id}", response_model=DocumentResponse)
def get_document(document_id: str, company_id: str = company_dep):
    with workflow_scope() as workflow:
        document = workflow.get_by_id(document_id, company_id)
    return _out(document)


@router.patch("/{document_id}", response_model=DocumentResponse)
def update_document(
    document_id: str, payload: DocumentUpdateRequest, company_id: str = company_dep
):
    """Édition sans changement de version."""
    with workflow_scope() as workflow:
        document = workflow.update(
            document_id, company_id, title=payload.title, content=payload.content
        )
    return _out(document)


@router.delete("/{document_id}", status_code=HTTP_NO_CONTENT)
def delete_document(document_id: str, company_id: str = company_dep):
    with workflow_scope() as workflow:
        workflow.delete(document_id, company_id)
    return Response(status_code=HTTP_NO_CONTENT)


@router.post(
    "/{document_id}/versions",
    response_model=DocumentVersionResponse,
    status_code=HTTP_CREATED,
)
def create_version(
    document_id: str,
    payload: VersionCreateRequest,
    user: TokenData = current_user_dep,
    company_id: str = company_dep,
):
    """Ajoute une révision; 409 si la version n'a pas pu être incrémentée."""
    with workflow_scope() as workflow:
        version = workflow.create_version(
            document_id,
            company_id,
            title=payload.title,
            content=payload.content,
            author_id=user.sub,
            summary=payload.changes_summary,
        )
    return DocumentVersionResponse.model_validate(version)


@router.get("/{document_id}/versions", response_model=list[DocumentVersionResponse])
def list_versions(document_id: str, company_id: str = company_dep):
    with workflow_scope() as workflow:
        versions = workflow.list_versions(document_id, company_id)
    return [DocumentVersionResponse.model_validate(v) for v in versions]


@router.post("/{document_id}/submit", response_model=DocumentResponse)
def submit_document(
    document_id: str, user: TokenData = current_user_dep, company_id: str = company_dep
):
    """`draft → review`."""
    with workflow_scope() as workflow:
        document = workflow.submit(document_id, company_id, user.sub)
    return _out(document)


@router.post("/{document_id}/decision", response_model=DocumentResponse)
def decide_document(
    document_id: str,
    payload: DecisionRequest,
    user: TokenData = current_user_dep,
    company_id: str = company_dep,
):
    """
    Approuve ou rejette un document en revue (rôle d'approbateur requis).

    Une approbation planifie la génération des work items après commit.
    """
    require_approver(user, container.settings.APPROVER_ROLES)
    with workflow_scope() as workflow:
        document = workflow.decide(
            document_id, company_id, payload.status, user.sub, reason=payload.reason
        )
    return _out(document)


@router.post(
    "/{document_id}/sections", response_model=DocumentResponse, status_code=HTTP_CREATED
)
def add_section(
    document_id: str, payload: SectionCreateRequest, company_id: str = company_dep
):
    with workflow_scope() as workflow:
        document = workflow.add_section(
            document_id,
            company_id,
            title=payload.title,
            content=payload.content,
            section_id=payload.id,
        )
    return _out(document)


@router.patch("/{document_id}/sections/{section_id}", response_model=DocumentResponse)
def update_section(
    document_id: str,
    section_id: str,
    payload: SectionUpdateRequest,
    company_id: str = company_dep,
):
    with workflow_scope() as workflow:
        document = workflow.update_section(
            document_id, company_id, section_id, title=payload.title, content=payload.content
        )
    return _out(document)


@router.delete("/{document_id}/sections/{section_id}", response_model=DocumentResponse)
def delete_section(document_id: str, section_id: str, company_id: str = company_dep):
    with workflow_scope() as workflow:
        document = workflow.delete_section(document_id, company_id, section_id)
    return _out(document)


@router.post(
    "/{document_id}/assignees/{user_id}",
    response_model=DocumentResponse,
    status_code=HTTP_CREATED,
)
def add_assignee(document_id: str, user_id: str, company_id: str = company_dep):
    with workflow_scope() as workflow:
        document = workflow.add_assignee(document_id, company_id, user_id)
    return _out(document)


@router.delete("/{document_id}/assignees/{user_id}", response_model=DocumentResponse)
def remove_assignee(document_id: str, user_id: str, company_id: str = company_dep):
    with workflow_scope() as workflow:
        document = workflow.remove_assignee(document_id, company_id, user_id)
    return _out(document)
