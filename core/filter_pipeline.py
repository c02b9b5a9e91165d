from typing import Iterable, Tuple

from core.models import ANY_LABEL, FilterCriteria, PhotoRecord


def matches(record: PhotoRecord, criteria: FilterCriteria) -> bool:
    if record.rating < criteria.min_rating:
        return False
    return criteria.label == ANY_LABEL or record.label == criteria.label


def apply(records: Iterable[PhotoRecord], criteria: FilterCriteria) -> Tuple[PhotoRecord, ...]:
    """Return the records satisfying *criteria*, in ascending-name order.

    Pure: records are only read. The sort is stable, so a catalog that is
    already name-ordered keeps its order and re-applying the same criteria to
    the result returns it unchanged.
    """
    visible = [r for r in records if matches(r, criteria)]
    visible.sort(key=lambda r: r.name)
    return tuple(visible)
