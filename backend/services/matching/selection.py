"""Display policy applied by callers on top of the engine's ranked matches."""

from typing import List, Optional, Sequence

from django.conf import settings

from .types import MatchResult


def select_for_display(
    matches: Sequence[MatchResult],
    min_score: Optional[int] = None,
    min_results: Optional[int] = None,
    max_results: Optional[int] = None,
) -> List[MatchResult]:
    """
    Pick the matches to show a rider.

    Keeps matches scoring at least ``min_score`` (up to ``max_results``). If
    fewer than ``min_results`` qualify, the best remaining matches are used to
    backfill up to ``min_results``. Defaults come from
    ``settings.MATCHING["DISPLAY"]``.
    """
    display = getattr(settings, "MATCHING", {}).get("DISPLAY", {})
    min_score = display.get("MIN_SCORE", 50) if min_score is None else min_score
    min_results = display.get("MIN_RESULTS", 3) if min_results is None else min_results
    max_results = display.get("MAX_RESULTS", 10) if max_results is None else max_results

    ranked = sorted(matches, key=lambda match: match.match_score, reverse=True)

    selected = [match for match in ranked if match.match_score >= min_score][:max_results]
    if len(selected) < min_results:
        selected = ranked[:min_results]
    return selected
