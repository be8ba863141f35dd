"""
Book API Routes

CRUD operations for the catalog including search and availability listings.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from loguru import logger

from librarium.api.dependencies import get_book_service, get_current_identity
from librarium.api.schemas import (
    BookCreate,
    BookResponse,
    BookUpdate,
    CountResponse,
    ErrorResponse,
    PageResponse,
)
from librarium.catalog.service import BookService

router = APIRouter(
    prefix="/books",
    tags=["books"],
    dependencies=[Depends(get_current_identity)],
)


# =============================================================================
# Listings
# =============================================================================

@router.get("", response_model=list[BookResponse])
async def list_books(
    author_id: Optional[int] = Query(None),
    category_id: Optional[int] = Query(None),
    books: BookService = Depends(get_book_service),
):
    """List books, optionally restricted to one author or category."""
    if author_id is not None:
        return await books.list_by_author(author_id)
    if category_id is not None:
        return await books.list_by_category(category_id)
    return await books.list_books()


@router.get("/page", response_model=PageResponse[BookResponse], responses={400: {"model": ErrorResponse}})
async def list_books_page(
    page: int = Query(1),
    page_size: int = Query(10),
    books: BookService = Depends(get_book_service),
):
    return (await books.list_books_page(page, page_size)).to_dict()


@router.get("/available", response_model=list[BookResponse])
async def list_available_books(books: BookService = Depends(get_book_service)):
    """Books with at least one copy on the shelf."""
    return await books.list_available()


@router.get("/search", response_model=list[BookResponse], responses={400: {"model": ErrorResponse}})
async def search_books(
    q: str = Query(..., description="Title substring, at least 2 characters"),
    books: BookService = Depends(get_book_service),
):
    return await books.search_books(q)


@router.get("/count", response_model=CountResponse)
async def count_books(books: BookService = Depends(get_book_service)):
    return {"total": await books.count_books()}


# =============================================================================
# CRUD Endpoints
# =============================================================================

@router.get("/{book_id}", response_model=BookResponse, responses={404: {"model": ErrorResponse}})
async def get_book(book_id: int, books: BookService = Depends(get_book_service)):
    """Get a book by ID with author and category names."""
    return await books.get_book(book_id)


@router.post(
    "",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid book data"},
        404: {"model": ErrorResponse, "description": "Author or category not found"},
    },
)
async def create_book(payload: BookCreate, books: BookService = Depends(get_book_service)):
    logger.info(f"Creating book: {payload.title}")
    return await books.create_book(**payload.model_dump())


@router.put(
    "/{book_id}",
    response_model=BookResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_book(
    book_id: int,
    payload: BookUpdate,
    books: BookService = Depends(get_book_service),
):
    return await books.update_book(book_id, **payload.model_dump(exclude_unset=True))


@router.delete(
    "/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse, "description": "Book is on loan"}},
)
async def delete_book(book_id: int, books: BookService = Depends(get_book_service)):
    await books.delete_book(book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
