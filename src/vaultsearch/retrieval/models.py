"""Passage models shared by the retrieval pipeline.

Index hits arrive loosely typed (row dicts, ``{"document": ..., "score": ...}``
wrappers, or objects). They are validated into ``SearchHit`` once, at the
index boundary, and everything downstream works with the strict models.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Literal, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

PassageSource = Literal["explicit", "vector"]


class IndexedPassage(BaseModel):
    """A passage as stored in the vector index."""

    model_config = ConfigDict(frozen=True, extra="ignore")
    # Compared by value; the embedding list and metadata dict make it unhashable.
    __hash__ = None  # type: ignore[assignment]

    id: str
    content: str
    path: str
    title: str = ""
    embedding: List[float] = Field(default_factory=list)
    embedding_model: str = Field(
        default="",
        validation_alias=AliasChoices("embedding_model", "embeddingModel"),
    )
    tags: FrozenSet[str] = frozenset()
    extension: str = ""
    created_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("created_at", "createdAt"),
    )
    nchars: int = Field(
        default=0,
        validation_alias=AliasChoices("nchars", "characterCount", "character_count"),
    )
    mtime: Optional[datetime] = None
    ctime: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_extra_keys(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data

        known = _known_keys(cls)
        values = {key: value for key, value in data.items() if key in known}
        extras = {key: value for key, value in data.items() if key not in known}

        metadata = dict(values.get("metadata") or {})
        metadata.update(extras)
        values["metadata"] = metadata

        if not any(key in values for key in ("nchars", "characterCount", "character_count")):
            content = values.get("content")
            if isinstance(content, str):
                values["nchars"] = len(content)
        return values

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            return frozenset({value}) if value else frozenset()
        return value

    @field_validator("embedding", mode="before")
    @classmethod
    def _coerce_embedding(cls, value: Any) -> Any:
        if value is None:
            return []
        # numpy arrays and pgvector values both expose tolist()
        if hasattr(value, "tolist"):
            return value.tolist()
        return value


def _known_keys(model: type[BaseModel]) -> set[str]:
    keys: set[str] = set()
    for name, field in model.model_fields.items():
        keys.add(name)
        alias = field.validation_alias
        if isinstance(alias, AliasChoices):
            keys.update(choice for choice in alias.choices if isinstance(choice, str))
        elif isinstance(alias, str):
            keys.add(alias)
    return keys


class SearchHit(BaseModel):
    """An index hit validated at the boundary: a passage plus an optional score."""

    model_config = ConfigDict(frozen=True)
    __hash__ = None  # type: ignore[assignment]

    passage: IndexedPassage
    score: Optional[float] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "SearchHit":
        """Validate one loosely typed index hit."""

        if isinstance(raw, SearchHit):
            return raw
        if isinstance(raw, IndexedPassage):
            return cls(passage=raw)

        if isinstance(raw, Mapping):
            if "document" in raw:
                return cls.model_validate({"passage": raw["document"], "score": raw.get("score")})
            document = {key: value for key, value in raw.items() if key != "score"}
            return cls.model_validate({"passage": document, "score": raw.get("score")})

        document = getattr(raw, "document", None)
        if document is not None:
            return cls.model_validate({"passage": document, "score": getattr(raw, "score", None)})

        raise TypeError(f"Unsupported index hit type: {type(raw).__name__}")


@dataclass(frozen=True)
class RetrievedPassage:
    """A passage selected by one retrieval call."""

    __hash__ = None  # type: ignore[assignment]

    passage: IndexedPassage
    score: Optional[float]
    source: PassageSource

    @classmethod
    def from_hit(cls, hit: SearchHit, source: PassageSource) -> "RetrievedPassage":
        return cls(passage=hit.passage, score=hit.score, source=source)

    @property
    def content(self) -> str:
        return self.passage.content

    @property
    def path(self) -> str:
        return self.passage.path

    @property
    def title(self) -> str:
        return self.passage.title

    @property
    def id(self) -> str:
        return self.passage.id

    def to_dict(self) -> Dict[str, Any]:
        """Flatten into a JSON-friendly mapping (embeddings omitted)."""

        data = self.passage.model_dump(mode="json", exclude={"embedding"})
        data["tags"] = sorted(self.passage.tags)
        data["score"] = self.score
        data["source"] = self.source
        return data


@dataclass(frozen=True)
class RetrievalOptions:
    """Bounds applied to every retrieval made by one retriever."""

    min_similarity_score: float
    max_k: int

    def __post_init__(self) -> None:
        if isinstance(self.max_k, bool) or not isinstance(self.max_k, int) or self.max_k < 1:
            raise ValueError("max_k must be a positive integer")
        if not isinstance(self.min_similarity_score, (int, float)) or not math.isfinite(self.min_similarity_score):
            raise ValueError("min_similarity_score must be a finite number")

    @classmethod
    def from_settings(cls, settings: Any) -> "RetrievalOptions":
        return cls(
            min_similarity_score=float(settings.min_similarity_score),
            max_k=int(settings.max_k),
        )
