"""
Grade consensus across providers.

Rules, in order:
- no vote with a value: agreement none, no grade
- one vote: partial, that vote's grade and tier
- several votes, same digit once +/- are stripped: full, high
- several differing votes: partial, majority wins, ties go to a
  high-tier vote, confidence forced to medium

Never returns a grade that no provider proposed.
"""

import re
from typing import Dict, List, Sequence

from gradeai.core.models import GradeAgreement, GradeConfidence, GradeConsensus, GradeVote

_MODIFIERS = re.compile(r"[+\-]")


def normalize_grade(grade: str) -> str:
    """Strip +/- modifiers; used for comparison only, never for display."""
    return _MODIFIERS.sub("", grade).strip()


def resolve_grade_consensus(votes: Sequence[GradeVote]) -> GradeConsensus:
    """
    Resolve the consensus grade from provider votes.

    Args:
        votes: One vote per provider; votes without a value are ignored

    Returns:
        GradeConsensus with the agreement tier and chosen grade
    """
    usable = sorted((v for v in votes if v.has_value), key=lambda v: v.provider)

    if not usable:
        return GradeConsensus(agreement=GradeAgreement.NONE, grade=None,
                              confidence=GradeConfidence.NOT_FOUND, votes=list(votes))

    if len(usable) == 1:
        vote = usable[0]
        return GradeConsensus(
            agreement=GradeAgreement.PARTIAL,
            grade=vote.grade.strip(),
            confidence=vote.confidence,
            found_on_page=vote.found_on_page,
            votes=list(votes),
        )

    normalized = {normalize_grade(v.grade) for v in usable}
    if len(normalized) == 1:
        first = usable[0]
        found_on_page = next((v.found_on_page for v in usable if v.found_on_page is not None), None)
        return GradeConsensus(
            agreement=GradeAgreement.FULL,
            grade=first.grade.strip(),
            confidence=GradeConfidence.HIGH,
            found_on_page=found_on_page,
            votes=list(votes),
        )

    winner = _majority_vote(usable)
    return GradeConsensus(
        agreement=GradeAgreement.PARTIAL,
        grade=winner.grade.strip(),
        confidence=GradeConfidence.MEDIUM,
        found_on_page=winner.found_on_page,
        votes=list(votes),
    )


def _majority_vote(votes: List[GradeVote]) -> GradeVote:
    """
    Most common normalized grade; a high-tier vote breaks count ties.

    The representative of each group is its first high-tier vote, else its
    first vote. Remaining ties fall back to the grade string.
    """
    groups: Dict[str, List[GradeVote]] = {}
    for vote in votes:
        groups.setdefault(normalize_grade(vote.grade), []).append(vote)

    def representative(group: List[GradeVote]) -> GradeVote:
        return next((v for v in group if v.confidence == GradeConfidence.HIGH), group[0])

    def rank(item):
        key, group = item
        has_high = any(v.confidence == GradeConfidence.HIGH for v in group)
        return (-len(group), 0 if has_high else 1, key)

    _, best_group = min(groups.items(), key=rank)
    return representative(best_group)


def votes_from_reports(reports) -> List[GradeVote]:
    """Build grade votes from successful vision reports."""
    return [
        GradeVote(
            provider=r.provider,
            grade=r.grade.value,
            confidence=r.grade.confidence,
            found_on_page=r.grade.found_on_page,
        )
        for r in reports
        if r.success
    ]
