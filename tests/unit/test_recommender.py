"""
Unit tests for the recommendation engine.
"""

import pytest

from librarium.exceptions import NotFoundError
from librarium.intelligence.recommender import (
    AUTHOR_SCORE,
    CATEGORY_SCORE,
    NEW_ARRIVAL_SCORE,
    RecommendationType,
)

pytestmark = pytest.mark.asyncio


@pytest.fixture
async def shelf(seed):
    """Two authors across two categories, with one reader who read a novel."""
    machado = await seed.author("Machado de Assis")
    clarice = await seed.author("Clarice Lispector")
    romance = await seed.category("Romance")
    contos = await seed.category("Contos")

    read = await seed.book("Dom Casmurro", machado.id, romance.id)
    books = {
        "quincas": await seed.book("Quincas Borba", machado.id, romance.id),
        "helena": await seed.book("Helena", machado.id, romance.id),
        "papeis": await seed.book("Papéis Avulsos", machado.id, contos.id),
        "lacos": await seed.book("Laços de Família", clarice.id, contos.id),
        "hora": await seed.book("A Hora da Estrela", clarice.id, romance.id),
    }

    reader = await seed.user()
    loan = await seed.loan(reader.id, read.id)
    await seed.loans.register_return(loan.id)

    return {
        "reader": reader,
        "read": read,
        "books": books,
        "authors": {"machado": machado, "clarice": clarice},
        "categories": {"romance": romance, "contos": contos},
    }


class TestRecommendForUser:
    """Tests for history-based recommendations."""

    async def test_never_suggests_borrowed_books(self, recommender, shelf):
        recs = await recommender.recommend_for_user(shelf["reader"].id, limit=10)

        assert recs
        assert shelf["read"].id not in {r.book.id for r in recs}

    async def test_no_duplicates(self, recommender, shelf):
        recs = await recommender.recommend_for_user(shelf["reader"].id, limit=10)
        ids = [r.book.id for r in recs]

        assert len(ids) == len(set(ids))

    async def test_category_picks_then_author_picks(self, recommender, shelf):
        recs = await recommender.recommend_for_user(shelf["reader"].id, limit=10)

        category_recs = [r for r in recs if r.type is RecommendationType.CATEGORY]
        author_recs = [r for r in recs if r.type is RecommendationType.AUTHOR]

        # Romance books on the shelf, in id order
        assert [r.book.title for r in category_recs] == ["Quincas Borba", "Helena", "A Hora da Estrela"]
        assert all(r.score == CATEGORY_SCORE for r in category_recs)
        assert all(r.reason == "favorite category: Romance" for r in category_recs)

        # Remaining Machado books not already picked
        assert [r.book.title for r in author_recs] == ["Papéis Avulsos"]
        assert author_recs[0].score == AUTHOR_SCORE
        assert author_recs[0].reason == "favorite author: Machado de Assis"

    async def test_category_share_of_limit(self, recommender, shelf):
        recs = await recommender.recommend_for_user(shelf["reader"].id, limit=3)

        # ceil(3 * 0.6) == 2 category picks; the single author slot
        # goes to Quincas Borba again and is dropped as a duplicate
        assert [r.book.title for r in recs] == ["Quincas Borba", "Helena"]
        assert all(r.type is RecommendationType.CATEGORY for r in recs)

    async def test_author_picks_fill_remaining_slots(self, recommender, seed, shelf):
        clarice_reader = await seed.user(name="Clarice Reader")
        loan = await seed.loan(clarice_reader.id, shelf["books"]["lacos"].id)
        await seed.loans.register_return(loan.id)

        recs = await recommender.recommend_for_user(clarice_reader.id, limit=5)

        # ceil(5 * 0.6) == 3 category slots, only one Contos book left
        assert [(r.book.title, r.type) for r in recs] == [
            ("Papéis Avulsos", RecommendationType.CATEGORY),
            ("A Hora da Estrela", RecommendationType.AUTHOR),
        ]

    async def test_skips_books_without_copies(self, recommender, seed, shelf):
        other = await seed.user(name="Other Reader")
        await seed.loan(other.id, shelf["books"]["quincas"].id)

        recs = await recommender.recommend_for_user(shelf["reader"].id, limit=10)

        assert shelf["books"]["quincas"].id not in {r.book.id for r in recs}

    async def test_cold_start(self, recommender, seed, shelf):
        newcomer = await seed.user(name="Newcomer")

        recs = await recommender.recommend_for_user(newcomer.id, limit=4)

        assert len(recs) == 4
        assert [r.book.title for r in recs] == [
            "A Hora da Estrela",
            "Laços de Família",
            "Papéis Avulsos",
            "Helena",
        ]
        assert all(r.score == NEW_ARRIVAL_SCORE for r in recs)
        assert all(r.reason == "new in the library" for r in recs)

    async def test_cold_start_limited_by_stock(self, recommender, seed, shelf):
        newcomer = await seed.user(name="Newcomer")

        recs = await recommender.recommend_for_user(newcomer.id, limit=50)

        assert len(recs) == 6

    async def test_unknown_user(self, recommender):
        with pytest.raises(NotFoundError):
            await recommender.recommend_for_user(999)

    async def test_empty_catalog(self, recommender, seed):
        user = await seed.user()

        assert await recommender.recommend_for_user(user.id) == []

    async def test_to_dict(self, recommender, shelf):
        rec = (await recommender.recommend_for_user(shelf["reader"].id, limit=1))[0]
        data = rec.to_dict()

        assert data["type"] == "category"
        assert data["score"] == CATEGORY_SCORE
        assert data["book"]["title"] == rec.book.title


class TestBrowse:
    """Tests for category and author browsing."""

    async def test_by_category(self, recommender, shelf):
        recs = await recommender.recommend_by_category(shelf["categories"]["contos"].id)

        assert [r.book.title for r in recs] == ["Papéis Avulsos", "Laços de Família"]
        assert all(r.reason == "books in category: Contos" for r in recs)

    async def test_by_category_excludes_user_history(self, recommender, shelf):
        recs = await recommender.recommend_by_category(
            shelf["categories"]["romance"].id,
            user_id=shelf["reader"].id,
        )

        assert shelf["read"].id not in {r.book.id for r in recs}

    async def test_by_author(self, recommender, shelf):
        recs = await recommender.recommend_by_author(shelf["authors"]["clarice"].id, limit=1)

        assert len(recs) == 1
        assert recs[0].type is RecommendationType.AUTHOR
        assert recs[0].reason == "books by author: Clarice Lispector"

    async def test_unknown_targets(self, recommender):
        assert await recommender.recommend_by_category(999) == []
        assert await recommender.recommend_by_author(999) == []

    async def test_new_user_list(self, recommender, shelf):
        recs = await recommender.recommend_for_new_user(limit=2)

        assert [r.book.title for r in recs] == ["A Hora da Estrela", "Laços de Família"]


class TestPreferences:
    """Tests for favorite categories and authors."""

    async def test_preferences(self, recommender, seed, shelf):
        reader = shelf["reader"]
        for key in ("papeis", "lacos"):
            loan = await seed.loan(reader.id, shelf["books"][key].id)
            await seed.loans.register_return(loan.id)

        prefs = await recommender.get_user_preferences(reader.id)

        assert [(c.name, c.total) for c in prefs.categories] == [("Contos", 2), ("Romance", 1)]
        assert [(a.name, a.total) for a in prefs.authors] == [("Machado de Assis", 2), ("Clarice Lispector", 1)]

    async def test_no_history(self, recommender, seed):
        user = await seed.user()

        prefs = await recommender.get_user_preferences(user.id)

        assert prefs.to_dict() == {"categories": [], "authors": []}


@pytest.fixture
async def four_genres(seed):
    """A reader with loans in four categories, each by its own author.

    Romance leads with two loans; the other three tie on one loan each, and
    their names sort opposite to their creation order.
    """
    genres = [
        ("Romance", "Machado de Assis"),
        ("Teatro", "Nelson Rodrigues"),
        ("Poesia", "Cecília Meireles"),
        ("Crônica", "Carlos Drummond"),
    ]
    reader = await seed.user()
    unread = {}
    for index, (category_name, author_name) in enumerate(genres):
        category = await seed.category(category_name)
        author = await seed.author(author_name)
        reads = 2 if index == 0 else 1
        for n in range(reads):
            book = await seed.book(f"{category_name} lido {n}", author.id, category.id)
            loan = await seed.loan(reader.id, book.id)
            await seed.loans.register_return(loan.id)
        unread[category_name] = await seed.book(f"{category_name} novo", author.id, category.id)

    return reader, unread


class TestFavoriteCap:
    """Only the top three favorites feed recommendations."""

    async def test_fourth_favorite_never_recommended(self, recommender, four_genres):
        reader, unread = four_genres

        recs = await recommender.recommend_for_user(reader.id, limit=20)

        assert [r.book.title for r in recs] == ["Romance novo", "Teatro novo", "Poesia novo"]
        assert all(r.type is RecommendationType.CATEGORY for r in recs)
        assert unread["Crônica"].id not in {r.book.id for r in recs}

    async def test_preferences_break_ties_by_id(self, recommender, four_genres):
        reader, _ = four_genres

        prefs = await recommender.get_user_preferences(reader.id)

        assert [(c.name, c.total) for c in prefs.categories] == [
            ("Romance", 2),
            ("Teatro", 1),
            ("Poesia", 1),
            ("Crônica", 1),
        ]
        assert [a.name for a in prefs.authors] == [
            "Machado de Assis",
            "Nelson Rodrigues",
            "Cecília Meireles",
            "Carlos Drummond",
        ]
