"""
Author API Routes

Reads are open to any authenticated caller; create and update require
the admin role.
"""

from fastapi import APIRouter, Depends, Query, Response, status

from librarium.api.dependencies import get_author_service, get_current_identity, require_admin
from librarium.api.schemas import (
    AuthorCreate,
    AuthorResponse,
    AuthorUpdate,
    CountResponse,
    ErrorResponse,
    PageResponse,
)
from librarium.catalog.service import AuthorService

router = APIRouter(
    prefix="/authors",
    tags=["authors"],
    dependencies=[Depends(get_current_identity)],
)


@router.get("", response_model=list[AuthorResponse])
async def list_authors(authors: AuthorService = Depends(get_author_service)):
    return await authors.list_authors()


@router.get("/page", response_model=PageResponse[AuthorResponse], responses={400: {"model": ErrorResponse}})
async def list_authors_page(
    page: int = Query(1),
    page_size: int = Query(10),
    authors: AuthorService = Depends(get_author_service),
):
    return (await authors.list_authors_page(page, page_size)).to_dict()


@router.get("/search", response_model=list[AuthorResponse], responses={400: {"model": ErrorResponse}})
async def search_authors(
    q: str = Query(..., description="Name substring, at least 2 characters"),
    authors: AuthorService = Depends(get_author_service),
):
    return await authors.search_authors(q)


@router.get("/count", response_model=CountResponse)
async def count_authors(authors: AuthorService = Depends(get_author_service)):
    return {"total": await authors.count_authors()}


@router.get("/{author_id}", response_model=AuthorResponse, responses={404: {"model": ErrorResponse}})
async def get_author(author_id: int, authors: AuthorService = Depends(get_author_service)):
    return await authors.get_author(author_id)


@router.post(
    "",
    response_model=AuthorResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def create_author(payload: AuthorCreate, authors: AuthorService = Depends(get_author_service)):
    return await authors.create_author(**payload.model_dump())


@router.put(
    "/{author_id}",
    response_model=AuthorResponse,
    dependencies=[Depends(require_admin)],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_author(
    author_id: int,
    payload: AuthorUpdate,
    authors: AuthorService = Depends(get_author_service),
):
    return await authors.update_author(author_id, **payload.model_dump(exclude_unset=True))


@router.delete(
    "/{author_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse, "description": "Author has books"}},
)
async def delete_author(author_id: int, authors: AuthorService = Depends(get_author_service)):
    await authors.delete_author(author_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
