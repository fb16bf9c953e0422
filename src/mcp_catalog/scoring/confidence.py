"""Confidence that an npm package is an MCP server.

Additive points for name, keyword, description, dependency and repository
signals, then a staleness multiplier, then a download bonus. Returns
(raw score, indicators); callers clamp to [0, 1] with to_confidence().
"""

from __future__ import annotations

from typing import Any

from mcp_catalog.config import (
    CONFIDENCE_CAPS,
    CONFIDENCE_MAX_SCORE,
    CONFIDENCE_POINTS,
    CONFIDENCE_THRESHOLD,
    DOWNLOAD_BONUS_TIERS,
    PROTOCOL_ABBREVIATION,
    PROTOCOL_EXPANSION,
    PROTOCOL_SCOPE,
    STALENESS_MULTIPLIER,
)
from mcp_catalog.manifest import dependency_names, string_list

# Type aliases
PackageInfo = dict[str, Any]
VersionInfo = dict[str, Any]


def _keyword_matches(keyword: str) -> bool:
    lowered = keyword.lower().replace("-", " ")
    return PROTOCOL_ABBREVIATION in lowered or PROTOCOL_EXPANSION in lowered


def _declared_keywords(package_info: PackageInfo, version_info: VersionInfo) -> list[str]:
    keywords = [
        *string_list(version_info.get("keywords")),
        *string_list(package_info.get("keywords")),
    ]
    # Same keyword in both documents counts once.
    seen: dict[str, str] = {}
    for k in keywords:
        seen.setdefault(k.lower(), k)
    return list(seen.values())


def score_name(name: str) -> tuple[float, list[str]]:
    lowered = name.lower()
    score = 0.0
    indicators: list[str] = []
    if PROTOCOL_ABBREVIATION in lowered:
        score += CONFIDENCE_POINTS["name_contains_abbreviation"]
        indicators.append("package-name-contains-mcp")
    if "model" in lowered and "context" in lowered:
        score += CONFIDENCE_POINTS["name_contains_model_context"]
        indicators.append("package-name-contains-model-context")
    return score, indicators


def score_keywords(keywords: list[str]) -> tuple[float, list[str]]:
    matches = [k for k in keywords if _keyword_matches(k)]
    if not matches:
        return 0.0, []
    score = min(
        CONFIDENCE_CAPS["keyword_match"],
        len(matches) * CONFIDENCE_POINTS["keyword_match"],
    )
    return float(score), [f"keywords: {', '.join(matches)}"]


def score_description(description: str) -> tuple[float, list[str]]:
    lowered = description.lower()
    if PROTOCOL_ABBREVIATION in lowered or PROTOCOL_EXPANSION in lowered:
        return float(CONFIDENCE_POINTS["description_protocol"]), ["description-contains-mcp"]
    if "model context" in lowered:
        return (
            float(CONFIDENCE_POINTS["description_model_context"]),
            ["description-contains-model-context"],
        )
    return 0.0, []


def score_dependencies(version_info: VersionInfo) -> tuple[float, list[str]]:
    deps = dict.fromkeys(
        name
        for field in ("dependencies", "devDependencies", "peerDependencies")
        for name in dependency_names(version_info.get(field))
    )
    matches = [
        d for d in deps
        if PROTOCOL_SCOPE in d.lower() or PROTOCOL_ABBREVIATION in d.lower()
    ]
    if not matches:
        return 0.0, []
    score = min(
        CONFIDENCE_CAPS["dependency_match"],
        len(matches) * CONFIDENCE_POINTS["dependency_match"],
    )
    return float(score), [f"dependencies: {', '.join(matches)}"]


def download_bonus(downloads: int) -> tuple[float, list[str]]:
    for floor, points, indicator in DOWNLOAD_BONUS_TIERS:
        if downloads > floor:
            return float(points), [indicator]
    return 0.0, []


def score_package(
    name: str,
    package_info: PackageInfo,
    version_info: VersionInfo,
    repository_url: str | None,
    is_recent: bool,
    downloads: int,
) -> tuple[float, list[str]]:
    """Run every signal and return (raw score, indicators)."""
    score = 0.0
    indicators: list[str] = []

    description = version_info.get("description") or package_info.get("description") or ""
    for points, found in (
        score_name(name),
        score_keywords(_declared_keywords(package_info, version_info)),
        score_description(description if isinstance(description, str) else ""),
        score_dependencies(version_info),
    ):
        score += points
        indicators.extend(found)

    if repository_url:
        score += CONFIDENCE_POINTS["has_repository"]
        indicators.append("has-github-repository")

    # Penalty applies to everything above, not to the download bonus.
    if not is_recent:
        score *= STALENESS_MULTIPLIER
        indicators.append("package-not-recently-maintained")

    points, found = download_bonus(downloads)
    score += points
    indicators.extend(found)

    return score, indicators


def to_confidence(score: float) -> float:
    return min(score, CONFIDENCE_MAX_SCORE) / CONFIDENCE_MAX_SCORE


def is_mcp(confidence: float) -> bool:
    return confidence >= CONFIDENCE_THRESHOLD
