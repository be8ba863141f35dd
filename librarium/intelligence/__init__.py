"""
Intelligence Module for Librarium

Recommendations built from the loan ledger:
- Favorite categories and authors
- Cold-start suggestions for new readers
- Browse by category or author
"""

from librarium.intelligence.recommender import (
    RecommendationEngine,
    Recommendation,
    RecommendationType,
    UserPreferences,
)

__all__ = [
    "RecommendationEngine",
    "Recommendation",
    "RecommendationType",
    "UserPreferences",
]
