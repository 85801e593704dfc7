from typing import Dict, List, NamedTuple, Sequence, Tuple


class MatchOutcome(NamedTuple):
    pairs: List[Tuple[str, str]]
    leftovers: List[str]


def match(voter_ids: Sequence[str], selections: Dict[str, str]) -> MatchOutcome:
    """Split voters into mutual pairs and leftovers.

    A pair (a, b) is emitted when a chose b and b chose a. Selections are
    visited in insertion order and both sides of a pair are marked as soon as
    it is found, so a voter lands in at most one pair whichever side is seen
    first. Voters not in any pair are returned as leftovers in ``voter_ids``
    order. Selections by or for non-voters are ignored.
    """
    voters = set(voter_ids)
    processed = set()
    pairs = []

    for voter, chosen in selections.items():
        if voter in processed or voter not in voters:
            continue
        if chosen in voters and chosen not in processed and chosen != voter \
                and selections.get(chosen) == voter:
            pairs.append((voter, chosen))
            processed.add(chosen)
        processed.add(voter)

    paired = {member for pair in pairs for member in pair}
    leftovers = [v for v in voter_ids if v not in paired]
    return MatchOutcome(pairs=pairs, leftovers=leftovers)
