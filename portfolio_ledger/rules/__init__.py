"""Rule based recommendation engine."""

from .recommendations import generate_all_recommendations, generate_recommendation, parse_price_range

__all__ = ["generate_all_recommendations", "generate_recommendation", "parse_price_range"]
