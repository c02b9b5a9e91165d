import os
from dataclasses import dataclass, field
from typing import Iterable, Optional

# Labels offered by the UI and accepted by the API.
COLOR_LABELS = ("Red", "Yellow", "Green", "Blue")

# Every color name that may show up as a keyword on disk. Used when the label
# is mirrored into Keywords so stale colors from other tools are removed too.
KEYWORD_COLOR_LABELS = ("Red", "Yellow", "Green", "Blue", "Purple", "Orange", "Gray")

# FilterCriteria.label value meaning "do not filter by label".
ANY_LABEL = "Any"

MIN_RATING = 0
MAX_RATING = 5

DEFAULT_ALLOWED_EXTENSIONS = frozenset({"jpg", "jpeg", "png"})


class _Unset:
    """Marker for "field not provided" (distinct from an explicit None label)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "UNSET"

    def __bool__(self):
        return False


UNSET = _Unset()


def validate_rating(rating) -> int:
    """Return *rating* as an int or raise ValueError if it is not in [0, 5]."""
    if isinstance(rating, bool) or not isinstance(rating, (int, float)):
        raise ValueError(f"rating must be an integer 0-5, got {rating!r}")
    if isinstance(rating, float):
        if not rating.is_integer():
            raise ValueError(f"rating must be an integer 0-5, got {rating!r}")
        rating = int(rating)
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValueError(f"rating must be 0-5, got {rating}")
    return rating


def normalize_label(label) -> Optional[str]:
    """Map the various "no label" spellings to None; everything else is stripped."""
    if label is None:
        return None
    if not isinstance(label, str):
        raise ValueError(f"label must be a string or None, got {label!r}")
    label = label.strip()
    return label or None


def validate_label(label, allowed: Iterable[str] = COLOR_LABELS) -> Optional[str]:
    """Normalize *label* and reject names outside *allowed*."""
    label = normalize_label(label)
    if label is not None and label not in tuple(allowed):
        raise ValueError(f"unknown color label {label!r}")
    return label


def normalize_extensions(extensions: Iterable[str]) -> frozenset:
    """Lower-case and strip leading dots: {'.JPG', 'png'} -> {'jpg', 'png'}."""
    return frozenset(ext.lower().lstrip(".") for ext in extensions if ext)


@dataclass
class PhotoRecord:
    """One scanned image file. ``rating`` and ``label`` are the mutable fields."""
    path: str
    size: int = 0
    mtime: float = 0.0
    rating: int = 0
    label: Optional[str] = None
    name: str = field(default="")

    def __post_init__(self):
        if not self.name:
            self.name = os.path.basename(self.path)
        self.rating = validate_rating(self.rating)
        self.label = normalize_label(self.label)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "size": self.size,
            "mtime": self.mtime,
            "rating": self.rating,
            "label": self.label,
        }


@dataclass(frozen=True)
class FilterCriteria:
    """Process-local filter state. ``min_rating=0`` and ``label=ANY_LABEL`` disable filtering."""
    min_rating: int = 0
    label: str = ANY_LABEL

    def __post_init__(self):
        object.__setattr__(self, "min_rating", validate_rating(self.min_rating))
        if self.label != ANY_LABEL:
            object.__setattr__(self, "label", normalize_label(self.label))

    @property
    def is_unfiltered(self) -> bool:
        return self.min_rating == 0 and self.label == ANY_LABEL
