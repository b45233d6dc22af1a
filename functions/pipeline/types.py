"""
Value types passed between pipeline stages.

Stages never mutate a repo in place; each stage returns new instances
(dataclasses.replace). Serialised form uses the camelCase field names of
the cached JSON document.
"""

from dataclasses import dataclass, field, fields
from typing import Optional

# Declared dependency categories, collapsed to these two for display
_DISPLAY_DEP_TYPES = {
    "dependencies": "dependencies",
    "peerDependencies": "dependencies",
    "optionalDependencies": "dependencies",
    "devDependencies": "devDependencies",
}

_JSON_FIELDS = {
    "owner": "owner",
    "name": "name",
    "full_name": "fullName",
    "stars": "stars",
    "last_push": "lastPush",
    "avatar_url": "avatarUrl",
    "is_fork": "isFork",
    "archived": "archived",
    "manifest_path": "manifestPath",
    "version": "version",
    "dep_type": "depType",
}


@dataclass(frozen=True)
class DependentRepo:
    owner: str
    name: str
    full_name: str
    stars: int = 0
    last_push: str = ""
    avatar_url: str = ""
    is_fork: bool = False
    archived: bool = False
    manifest_path: Optional[str] = None
    version: Optional[str] = None
    dep_type: Optional[str] = None

    @property
    def display_dep_type(self) -> Optional[str]:
        if self.dep_type is None:
            return None
        return _DISPLAY_DEP_TYPES.get(self.dep_type, "dependencies")

    def to_dict(self) -> dict:
        data = {}
        for attr, key in _JSON_FIELDS.items():
            value = getattr(self, attr)
            # Optional fields are omitted rather than written as null
            if value is None:
                continue
            data[key] = value
        return data

    @classmethod
    def _kwargs_from_dict(cls, data: dict) -> dict:
        kwargs = {}
        for attr, key in _JSON_FIELDS.items():
            if key in data:
                kwargs[attr] = data[key]

        # Entries written before manifestPath existed
        if "manifest_path" not in kwargs and data.get("packageJsonPath"):
            kwargs["manifest_path"] = data["packageJsonPath"]

        if "full_name" not in kwargs:
            kwargs["full_name"] = f"{data.get('owner', '')}/{data.get('name', '')}"
        kwargs.setdefault("owner", "")
        kwargs.setdefault("name", "")
        return kwargs

    @classmethod
    def from_dict(cls, data: dict) -> "DependentRepo":
        return cls(**cls._kwargs_from_dict(data))


@dataclass(frozen=True)
class ScoredRepo(DependentRepo):
    score: float = 0.0

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["score"] = self.score
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ScoredRepo":
        return cls(score=float(data.get("score", 0)), **cls._kwargs_from_dict(data))

    @classmethod
    def from_repo(cls, repo: DependentRepo, score: float) -> "ScoredRepo":
        base = {f.name: getattr(repo, f.name) for f in fields(DependentRepo)}
        return cls(score=score, **base)


@dataclass
class SearchResult:
    repos: list[DependentRepo] = field(default_factory=list)
    partial: bool = False
    rate_limited: bool = False
    capped: bool = False


@dataclass
class EnrichResult:
    repos: list[DependentRepo] = field(default_factory=list)
    rate_limited: bool = False
