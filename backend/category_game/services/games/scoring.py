from typing import Iterable, List

from .state import RoundResult, Submission

SUMMARY_SHOW_ALL_LIMIT = 6
SUMMARY_EDGE_COUNT = 3


def score_submission(submission: Submission) -> RoundResult:
    """Tally one submission's yes/no votes.

    Points are ``min(yes, no)``: an exemplar that splits the room earns the
    most, a unanimous one earns nothing.
    """
    votes = [{'playerId': pid, 'vote': vote} for pid, vote in submission.votes.items()]
    yes_count = sum(1 for v in votes if v['vote'])
    no_count = len(votes) - yes_count
    return RoundResult(
        exemplar=submission.exemplar,
        submitted_by=submission.nickname,
        player_id=submission.player_id,
        votes=votes,
        yes_count=yes_count,
        no_count=no_count,
        points=min(yes_count, no_count),
    )


def score_round(submissions: Iterable[Submission]) -> List[RoundResult]:
    return [score_submission(s) for s in submissions]


def rank_results(results: Iterable[RoundResult]) -> List[RoundResult]:
    # Most points first; on equal points the closer yes/no split comes first
    return sorted(results, key=lambda r: (-r.points, r.controversy))


def build_summary(results: Iterable[RoundResult]) -> dict:
    ranked = rank_results(results)
    if len(ranked) <= SUMMARY_SHOW_ALL_LIMIT:
        return {
            'showAll': True,
            'allResults': [r.to_dict() for r in ranked],
            'title': f'All {len(ranked)} Exemplars (Most to Least Points)',
        }
    return {
        'showAll': False,
        'topResults': [r.to_dict() for r in ranked[:SUMMARY_EDGE_COUNT]],
        'bottomResults': [r.to_dict() for r in ranked[-SUMMARY_EDGE_COUNT:]],
        'title': 'Top & Bottom Scoring Exemplars',
    }
