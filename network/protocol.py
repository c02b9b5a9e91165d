import dataclasses
import json
import typing
from typing import List, Optional


# ==============================================================================
#  Base Message class
# ==============================================================================

@dataclasses.dataclass
class Message:
    """Base for all API payloads. Provides dict/JSON round-trip."""

    @classmethod
    def model_validate(cls, data: dict):
        """Construct from dict, recursively hydrating nested Message fields.

        Unknown keys are ignored; missing keys take the field default.
        """
        if not isinstance(data, dict):
            raise ValueError(f"{cls.__name__} expects a JSON object, got {type(data).__name__}")
        hints = typing.get_type_hints(cls)
        kwargs = {}
        for f in dataclasses.fields(cls):
            if f.name not in data:
                continue
            val = data[f.name]
            hint = hints.get(f.name)
            origin = getattr(hint, '__origin__', None)
            # List[MessageSubclass]
            if origin is list and val:
                inner = getattr(hint, '__args__', (None,))[0]
                if inner and isinstance(inner, type) and issubclass(inner, Message):
                    val = [inner.model_validate(v) if isinstance(v, dict) else v for v in val]
            # Bare MessageSubclass field
            elif isinstance(hint, type) and issubclass(hint, Message) and isinstance(val, dict):
                val = hint.model_validate(val)
            kwargs[f.name] = val
        return cls(**kwargs)

    def model_dump(self) -> dict:
        return dataclasses.asdict(self)

    def model_dump_json(self) -> str:
        return json.dumps(self.model_dump())


# ==============================================================================
#  Common Structures
# ==============================================================================

@dataclasses.dataclass
class ErrorResponse(Message):
    error: str = ""

@dataclasses.dataclass
class SuccessResponse(Message):
    success: bool = True

@dataclasses.dataclass
class PhotoEntry(Message):
    name: str = ""
    path: str = ""
    size: int = 0
    mtime: float = 0.0
    rating: int = 0
    label: Optional[str] = None

@dataclasses.dataclass
class FolderEntry(Message):
    name: str = ""
    path: str = ""

# ==============================================================================
#  Request/Response Models
# ==============================================================================

# --- GET /api/photos ---
@dataclasses.dataclass
class PhotosResponse(Message):
    path: str = ""
    photos: List[PhotoEntry] = dataclasses.field(default_factory=list)
    warning: Optional[str] = None

# --- GET /api/folders ---
@dataclasses.dataclass
class FoldersResponse(Message):
    path: str = ""
    folders: List[FolderEntry] = dataclasses.field(default_factory=list)

# --- GET /api/metadata ---
@dataclasses.dataclass
class MetadataResponse(Message):
    rating: int = 0
    label: Optional[str] = None

# --- POST /api/metadata ---
# rating/label absent from the JSON body means "leave unchanged"; the
# server reads those two keys straight from the body for that reason.
@dataclasses.dataclass
class UpdateMetadataRequest(Message):
    file: str = ""

# --- POST /api/copy-files ---
@dataclasses.dataclass
class CopyFilesRequest(Message):
    files: List[str] = dataclasses.field(default_factory=list)
    destination: str = ""

@dataclasses.dataclass
class CopyFilesResponse(Message):
    success: bool = True
    count: int = 0
