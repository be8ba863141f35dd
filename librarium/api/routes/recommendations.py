"""
Recommendation API Routes

Personalized picks for the calling user, browsing by category or author,
cold-start suggestions and the user's reading preferences.
"""

from fastapi import APIRouter, Depends, Query

from librarium.api.dependencies import Identity, get_current_identity, get_recommender
from librarium.api.schemas import ErrorResponse, PreferencesResponse, RecommendationResponse
from librarium.intelligence.recommender import RecommendationEngine

router = APIRouter(
    prefix="/recommendations",
    tags=["recommendations"],
    dependencies=[Depends(get_current_identity)],
)

LIMIT = Query(10, ge=1, le=50, description="Maximum number of recommendations")


@router.get("/me", response_model=list[RecommendationResponse], responses={404: {"model": ErrorResponse}})
async def recommend_for_me(
    limit: int = LIMIT,
    identity: Identity = Depends(get_current_identity),
    engine: RecommendationEngine = Depends(get_recommender),
):
    """Recommendations from the caller's loan history."""
    recs = await engine.recommend_for_user(identity.id, limit)
    return [rec.to_dict() for rec in recs]


@router.get("/preferences", response_model=PreferencesResponse)
async def my_preferences(
    identity: Identity = Depends(get_current_identity),
    engine: RecommendationEngine = Depends(get_recommender),
):
    """The caller's most borrowed categories and authors."""
    return (await engine.get_user_preferences(identity.id)).to_dict()


@router.get("/categories/{category_id}", response_model=list[RecommendationResponse])
async def recommend_by_category(
    category_id: int,
    limit: int = LIMIT,
    identity: Identity = Depends(get_current_identity),
    engine: RecommendationEngine = Depends(get_recommender),
):
    recs = await engine.recommend_by_category(category_id, user_id=identity.id, limit=limit)
    return [rec.to_dict() for rec in recs]


@router.get("/authors/{author_id}", response_model=list[RecommendationResponse])
async def recommend_by_author(
    author_id: int,
    limit: int = LIMIT,
    identity: Identity = Depends(get_current_identity),
    engine: RecommendationEngine = Depends(get_recommender),
):
    recs = await engine.recommend_by_author(author_id, user_id=identity.id, limit=limit)
    return [rec.to_dict() for rec in recs]


@router.get("/new-user", response_model=list[RecommendationResponse])
async def recommend_for_new_user(
    limit: int = LIMIT,
    engine: RecommendationEngine = Depends(get_recommender),
):
    """Newest books on the shelf."""
    recs = await engine.recommend_for_new_user(limit)
    return [rec.to_dict() for rec in recs]
