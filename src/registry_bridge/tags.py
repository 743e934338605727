"""Classification of image tags by what kind of version they name."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class TagCategory(str, Enum):
    """Semantic category of an image tag."""

    AURORA_SNAPSHOT_VERSION = "AURORA_SNAPSHOT_VERSION"
    SNAPSHOT = "SNAPSHOT"
    BUGFIX = "BUGFIX"
    MINOR = "MINOR"
    MAJOR = "MAJOR"
    LATEST = "LATEST"
    COMMIT_HASH = "COMMIT_HASH"
    AURORA_VERSION = "AURORA_VERSION"


# SNAPSHOT-<branch>-<yyyyMMdd.HHmmss>-<build>-b<x.y.z>[-<rest>]
AURORA_SNAPSHOT_PATTERN = re.compile(
    r"SNAPSHOT-.+-\d{8}\.\d{6}-\d+-b\d+\.\d+\.\d+(-.*)?"
)
BUGFIX_PATTERN = re.compile(r"\d+\.\d+\.\d+")
MINOR_PATTERN = re.compile(r"\d+\.\d+")
MAJOR_PATTERN = re.compile(r"\d+")
COMMIT_HASH_PATTERN = re.compile(r"[0-9a-f]{7}")


def classify_tag(tag: str) -> TagCategory:
    """Classify a tag. First matching rule wins.

    Anything not recognised falls back to AURORA_VERSION, which also covers
    real Aurora versions such as ``4.1.3-b1.6.0-flange-8.152.18``.

    Args:
        tag: Tag name

    Returns:
        TagCategory of the tag
    """
    if AURORA_SNAPSHOT_PATTERN.fullmatch(tag):
        return TagCategory.AURORA_SNAPSHOT_VERSION
    if tag.endswith("-SNAPSHOT"):
        return TagCategory.SNAPSHOT
    if BUGFIX_PATTERN.fullmatch(tag):
        return TagCategory.BUGFIX
    if MINOR_PATTERN.fullmatch(tag):
        return TagCategory.MINOR
    if MAJOR_PATTERN.fullmatch(tag):
        return TagCategory.MAJOR
    if tag == "latest":
        return TagCategory.LATEST
    if COMMIT_HASH_PATTERN.fullmatch(tag):
        return TagCategory.COMMIT_HASH
    return TagCategory.AURORA_VERSION


@dataclass(frozen=True)
class TypedTag:
    """A tag together with its category."""

    name: str
    category: TagCategory

    @classmethod
    def of(cls, name: str) -> "TypedTag":
        return cls(name=name, category=classify_tag(name))


def typed_tags(tags: Iterable[str]) -> list[TypedTag]:
    """Attach a category to every tag, keeping order."""
    return [TypedTag.of(tag) for tag in tags]


def group_tags_by_category(tags: Iterable[str]) -> dict[TagCategory, list[str]]:
    """Group tags by category.

    Groups appear in order of their first tag; tags keep their input order
    inside each group.
    """
    groups: dict[TagCategory, list[str]] = {}
    for tag in tags:
        groups.setdefault(classify_tag(tag), []).append(tag)
    return groups
