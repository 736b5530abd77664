"""
Cross-run review deduplication.

Some sources cannot supply a stable native id, so a review seen again on a
later scrape may arrive under a new id. A candidate is therefore a
duplicate when its id is already known OR its content fingerprint
(user name, rating, text, version) is. Distinct reviews that share a
fingerprint are merged on purpose.
"""

from typing import Iterable, List, Set, Tuple

from review_hub.models.review import Review

Fingerprint = Tuple[str, int, str, str]


def fingerprint(review: Review) -> Fingerprint:
    return (review.user_name, review.rating, review.text, review.version)


class ReviewDeduplicator:
    """
    Tracks known ids and fingerprints and filters candidates against them.

    Seeded with the reviews already stored for an app; every accepted
    candidate is remembered, so duplicates within one batch are dropped
    as well.
    """

    def __init__(self, existing: Iterable[Review] = ()):
        self._ids: Set[str] = set()
        self._fingerprints: Set[Fingerprint] = set()
        for review in existing:
            self.remember(review)

    def remember(self, review: Review) -> None:
        self._ids.add(review.id)
        self._fingerprints.add(fingerprint(review))

    def is_duplicate(self, review: Review) -> bool:
        return review.id in self._ids or fingerprint(review) in self._fingerprints

    def filter_new(self, candidates: Iterable[Review]) -> List[Review]:
        """Candidates not seen before, in input order; first occurrence wins."""
        fresh: List[Review] = []
        for review in candidates:
            if self.is_duplicate(review):
                continue
            self.remember(review)
            fresh.append(review)
        return fresh

    def __len__(self) -> int:
        return len(self._ids)
