from typing import List, Sequence


def matched_targets(line: str, pending: Sequence[str]) -> List[str]:
    """
    Return the pending targets that occur in ``line``, in target order.

    Matching is plain substring containment: case-sensitive, no wildcards,
    no regular expressions.
    """
    return [target for target in pending if target in line]
