"""
Category API Routes
"""

from fastapi import APIRouter, Depends, Query, Response, status

from librarium.api.dependencies import get_category_service, get_current_identity, require_admin
from librarium.api.schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    CountResponse,
    ErrorResponse,
    PageResponse,
)
from librarium.catalog.service import CategoryService

router = APIRouter(
    prefix="/categories",
    tags=["categories"],
    dependencies=[Depends(get_current_identity)],
)


@router.get("", response_model=list[CategoryResponse])
async def list_categories(categories: CategoryService = Depends(get_category_service)):
    return await categories.list_categories()


@router.get("/page", response_model=PageResponse[CategoryResponse], responses={400: {"model": ErrorResponse}})
async def list_categories_page(
    page: int = Query(1),
    page_size: int = Query(10),
    categories: CategoryService = Depends(get_category_service),
):
    return (await categories.list_categories_page(page, page_size)).to_dict()


@router.get("/search", response_model=list[CategoryResponse], responses={400: {"model": ErrorResponse}})
async def search_categories(
    q: str = Query(...),
    categories: CategoryService = Depends(get_category_service),
):
    return await categories.search_categories(q)


@router.get("/count", response_model=CountResponse)
async def count_categories(categories: CategoryService = Depends(get_category_service)):
    return {"total": await categories.count_categories()}


@router.get("/{category_id}", response_model=CategoryResponse, responses={404: {"model": ErrorResponse}})
async def get_category(category_id: int, categories: CategoryService = Depends(get_category_service)):
    return await categories.get_category(category_id)


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Name already taken"},
    },
)
async def create_category(payload: CategoryCreate, categories: CategoryService = Depends(get_category_service)):
    return await categories.create_category(payload.name, payload.description)


@router.put(
    "/{category_id}",
    response_model=CategoryResponse,
    dependencies=[Depends(require_admin)],
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Name already taken"},
    },
)
async def update_category(
    category_id: int,
    payload: CategoryUpdate,
    categories: CategoryService = Depends(get_category_service),
):
    return await categories.update_category(category_id, **payload.model_dump(exclude_unset=True))


@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse, "description": "Category has books"}},
)
async def delete_category(category_id: int, categories: CategoryService = Depends(get_category_service)):
    await categories.delete_category(category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
