"""npm package analyzer.

Scores a package for MCP relevance and converts qualifying packages into
CatalogEntry records. npm-sourced entries get a synthesized README and a
generic ``node`` launch template; no parameters are inferred for them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from mcp_catalog import config, manifest
from mcp_catalog.analyzers.base import Analyzer
from mcp_catalog.collectors.npm import NpmClient, NpmSearchResult
from mcp_catalog.errors import CatalogError
from mcp_catalog.output.models import (
    CatalogEntry,
    LaunchTemplate,
    PackageAnalysis,
    PackageMetadata,
    SourceKind,
    Transport,
    utcnow,
)
from mcp_catalog.scoring.confidence import is_mcp, score_package, to_confidence

logger = logging.getLogger(__name__)


def _extract_author(author: Any) -> str | None:
    if isinstance(author, dict):
        author = author.get("name")
    return manifest.text(author)


def generate_readme(analysis: PackageAnalysis) -> str:
    """Markdown summary built from registry metadata (nothing is fetched)."""
    name = analysis.package_name
    meta = analysis.metadata
    parts = [f"# {name}\n\n"]

    if meta.description:
        parts.append(f"{meta.description}\n\n")

    parts.append("## Installation\n\n")
    parts.append(f"```bash\nnpm install {name}\n```\n\n")

    if analysis.repository_url:
        parts.append("## Repository\n\n")
        parts.append(f"[GitHub]({analysis.repository_url})\n\n")

    if meta.homepage:
        parts.append("## Homepage\n\n")
        parts.append(f"[{meta.homepage}]({meta.homepage})\n\n")

    if analysis.indicators:
        parts.append("## MCP Indicators\n\n")
        parts.append("This package was identified as MCP-related due to:\n")
        parts.extend(f"- {indicator}\n" for indicator in analysis.indicators)
        parts.append("\n")
        parts.append(f"Confidence score: {analysis.confidence * 100:.1f}%\n\n")

    return "".join(parts)


def generate_tags(analysis: PackageAnalysis) -> list[str]:
    tags: list[str] = []
    if analysis.is_mcp:
        tags.extend(config.REGISTRY_PROTOCOL_TAGS)
    tags.extend(k.lower() for k in analysis.metadata.keywords)
    tags.append(config.REGISTRY_SOURCE_TAG)
    return list(dict.fromkeys(tags))


def analysis_to_entry(analysis: PackageAnalysis) -> CatalogEntry:
    name = analysis.package_name
    meta = analysis.metadata
    now = utcnow()
    return CatalogEntry(
        id=f"npm:{name}",
        name=name,
        description=meta.description or f"{name} MCP server",
        version=meta.version,
        author=meta.author or "Unknown",
        license=meta.license or "Unknown",
        tags=generate_tags(analysis),
        readme=generate_readme(analysis),
        config_template=LaunchTemplate(
            command="node",
            args=[f"./node_modules/.bin/{name}"],
            env={},
            transport=Transport.STDIO,
        ),
        source=SourceKind.NPM,
        source_url=f"https://www.npmjs.com/package/{name}",
        package_name=name,
        popularity=meta.downloads or 0,
        verified=False,
        created_at=now,
        updated_at=now,
        last_researched_at=now,
    )


class PackageAnalyzer(Analyzer):
    """Scores npm packages and materializes the MCP ones."""

    def __init__(self, npm: NpmClient) -> None:
        self._npm = npm

    async def analyze(self, identifier: str) -> CatalogEntry | None:
        analysis = await self.analyze_package(identifier)
        if not analysis.is_mcp:
            return None
        return analysis_to_entry(analysis)

    async def analyze_search_results(self, search_result: NpmSearchResult) -> list[PackageAnalysis]:
        """Analyze every hit concurrently; a failing package is logged and dropped."""
        names = [
            obj.get("package", {}).get("name")
            for obj in search_result.get("objects") or []
        ]
        names = [n for n in names if n]
        results = await asyncio.gather(
            *(self.analyze_package(n) for n in names), return_exceptions=True
        )

        analyses: list[PackageAnalysis] = []
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.warning("Failed to analyze package %s: %s", name, result)
                continue
            analyses.append(result)
        return analyses

    async def analyze_package(self, name: str) -> PackageAnalysis:
        """Fetch registry metadata and score it; zero confidence on fetch failure."""
        logger.debug("Analyzing npm package: %s", name)
        try:
            package_info = await self._npm.get_package_info(name)
            latest = self._npm.get_latest_version(package_info)
            version_info = (package_info.get("versions") or {}).get(latest)
            if version_info is None:
                version_info = await self._npm.get_package_version(name, latest)
        except CatalogError as exc:
            logger.error("Error analyzing npm package %s: %s", name, exc)
            return PackageAnalysis(package_name=name)

        stats = await self._npm.get_download_stats(name, config.DOWNLOAD_STATS_PERIOD)
        try:
            analysis = self._score(name, latest, package_info, version_info, stats.downloads)
        except Exception:
            logger.exception("Malformed npm metadata for %s", name)
            return PackageAnalysis(package_name=name)

        logger.debug(
            "Package analysis complete for %s: MCP=%s, confidence=%.2f",
            name, analysis.is_mcp, analysis.confidence,
        )
        return analysis

    def _score(
        self,
        name: str,
        latest: str,
        package_info: dict[str, Any],
        version_info: dict[str, Any],
        downloads: int,
    ) -> PackageAnalysis:
        repository_url = self._npm.extract_repository_url(package_info)
        is_recent = self._npm.is_recently_maintained(package_info)

        score, indicators = score_package(
            name,
            package_info,
            version_info,
            repository_url=repository_url,
            is_recent=is_recent,
            downloads=downloads,
        )
        confidence = to_confidence(score)

        keywords = (
            manifest.string_list(version_info.get("keywords"))
            or manifest.string_list(package_info.get("keywords"))
        )
        return PackageAnalysis(
            package_name=name,
            is_mcp=is_mcp(confidence),
            confidence=confidence,
            indicators=indicators,
            repository_url=repository_url,
            metadata=PackageMetadata(
                description=(
                    manifest.text(version_info.get("description"))
                    or manifest.text(package_info.get("description"))
                ),
                version=manifest.text(latest) or "unknown",
                author=_extract_author(version_info.get("author") or package_info.get("author")),
                license=_license_name(version_info.get("license") or package_info.get("license")),
                keywords=keywords,
                homepage=(
                    manifest.text(version_info.get("homepage"))
                    or manifest.text(package_info.get("homepage"))
                ),
                downloads=downloads,
                is_recent=is_recent,
            ),
        )


def _license_name(value: Any) -> str | None:
    if isinstance(value, dict):
        value = value.get("type")
    return manifest.text(value)
