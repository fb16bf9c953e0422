"""GitHub repository analyzer.

Fetches repo metadata, package.json and README for one repository, runs
three independent MCP detectors (manifest, README, schema files) and, if
any fires, builds a CatalogEntry with a launch template and inferred
parameters.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

from mcp_catalog import config, manifest
from mcp_catalog.analyzers import schema_files
from mcp_catalog.analyzers.base import Analyzer
from mcp_catalog.collectors.github import GitHubClient, GitHubRepo
from mcp_catalog.errors import CatalogError, FetchError
from mcp_catalog.output.models import (
    CatalogEntry,
    LaunchTemplate,
    ParamSpec,
    ParamType,
    SourceKind,
    Transport,
    utcnow,
)

logger = logging.getLogger(__name__)

PackageJson = dict[str, Any]

_README_MCP_RE = re.compile(r"MCP|Model Context Protocol", re.IGNORECASE)

# A fenced block whose body is an mcpServers config object.
_MCP_SERVERS_BLOCK_RE = re.compile(
    r"```(?:json|jsonc|bash|sh)?[ \t]*\n(\s*\{\s*\"mcpServers\".*?)```",
    re.DOTALL,
)
_COMMAND_RE = re.compile(
    r"\{\s*\"mcpServers\"\s*:\s*\{[^}]*\"command\"\s*:\s*\"([^\"]+)\"",
    re.DOTALL,
)
_SSE_RE = re.compile(r"\bsse\b|server-sent events", re.IGNORECASE)


@dataclass
class MCPMetadata:
    has_mcp: bool = False
    tools: list[Any] = field(default_factory=list)
    resources: list[Any] = field(default_factory=list)
    prompts: list[Any] = field(default_factory=list)
    transport: Transport | None = None
    command: str | None = None
    args: list[str] | None = None
    env: dict[str, str] | None = None


# ----------------------------------------------------------------------
# Detectors
# ----------------------------------------------------------------------


def _mentions_protocol(text: str) -> bool:
    lowered = text.lower()
    return (
        config.PROTOCOL_ABBREVIATION in lowered
        or config.PROTOCOL_EXPANSION in lowered
        or config.PROTOCOL_EXPANSION.replace(" ", "-") in lowered
        or config.PROTOCOL_EXPANSION.replace(" ", "") in lowered
    )


def check_manifest(package_json: PackageJson) -> bool:
    """True if any dependency, keyword or the description mentions MCP."""
    deps = [
        *manifest.dependency_names(package_json.get("dependencies")),
        *manifest.dependency_names(package_json.get("devDependencies")),
    ]
    if any(_mentions_protocol(dep) for dep in deps):
        return True

    if any(_mentions_protocol(k) for k in manifest.string_list(package_json.get("keywords"))):
        return True

    description = manifest.text(package_json.get("description"))
    return description is not None and _mentions_protocol(description)


def _server_config_from_block(block: str) -> dict[str, Any] | None:
    """First server entry of an mcpServers JSON block, if it parses."""
    try:
        data = json.loads(block)
    except ValueError:
        return None
    servers = data.get("mcpServers") if isinstance(data, dict) else None
    if not isinstance(servers, dict):
        return None
    for server in servers.values():
        if isinstance(server, dict):
            return server
    return None


def extract_from_readme(readme: str) -> MCPMetadata:
    """README detector: protocol mention, launch command and transport."""
    metadata = MCPMetadata()
    if not _README_MCP_RE.search(readme):
        return metadata
    metadata.has_mcp = True

    block = _MCP_SERVERS_BLOCK_RE.search(readme)
    server = _server_config_from_block(block.group(1)) if block else None
    if server is not None:
        if isinstance(server.get("command"), str):
            metadata.command = server["command"]
        args = server.get("args")
        if isinstance(args, list):
            metadata.args = [str(a) for a in args]
        env = server.get("env")
        if isinstance(env, dict):
            metadata.env = {str(k): "" if v is None else str(v) for k, v in env.items()}
    else:
        # Loose match for blocks that are not strict JSON (comments, trailing commas).
        m = _COMMAND_RE.search(readme)
        if m:
            metadata.command = m.group(1)

    if "stdio" in readme.lower():
        metadata.transport = Transport.STDIO
    elif _SSE_RE.search(readme):
        metadata.transport = Transport.SSE

    return metadata


# ----------------------------------------------------------------------
# Template / parameter derivation
# ----------------------------------------------------------------------


def infer_param_type(value: str | None) -> ParamType:
    if not value:
        return ParamType.STRING

    lowered = value.lower()
    if any(hint in lowered for hint in config.SECRET_VALUE_HINTS):
        return ParamType.SECRET
    if "/" in value or "\\" in value or "." in value:
        return ParamType.PATH
    try:
        if math.isfinite(float(value)):
            return ParamType.NUMBER
    except ValueError:
        pass
    if lowered in ("true", "false"):
        return ParamType.BOOLEAN
    return ParamType.STRING


def generate_launch_template(
    metadata: MCPMetadata, package_json: PackageJson | None
) -> LaunchTemplate:
    package_json = package_json or {}
    main = package_json.get("main")
    return LaunchTemplate(
        command=metadata.command or manifest.text(package_json.get("name")) or "node",
        args=metadata.args or ([main] if isinstance(main, str) and main else []),
        env=metadata.env or {},
        transport=metadata.transport or Transport.STDIO,
    )


def extract_parameters(
    template: LaunchTemplate,
) -> tuple[list[ParamSpec], list[ParamSpec]]:
    """Split env vars into (required, optional): empty value means required."""
    required: list[ParamSpec] = []
    optional: list[ParamSpec] = []
    for key, value in template.env.items():
        param = ParamSpec(
            key=key,
            type=infer_param_type(value),
            description=f"Environment variable for {key}",
            default=value or None,
        )
        if value:
            optional.append(param)
        else:
            required.append(param)
    return required, optional


def _extract_author(package_json: PackageJson | None) -> str:
    author = (package_json or {}).get("author")
    if isinstance(author, dict):
        author = author.get("name")
    return manifest.text(author) or "Unknown"


def _extract_license(package_json: PackageJson | None, repo: GitHubRepo) -> str:
    declared = (package_json or {}).get("license")
    if isinstance(declared, dict):
        declared = declared.get("type")
    declared = manifest.text(declared)
    if declared:
        return declared
    license_info = repo.get("license")
    if isinstance(license_info, dict):
        return license_info.get("name") or ""
    return ""


def _extract_tags(package_json: PackageJson | None, repo: GitHubRepo) -> list[str]:
    tags: list[str] = list(repo.get("topics") or [])
    tags.extend(manifest.string_list((package_json or {}).get("keywords")))
    tags.extend(config.PROTOCOL_TAGS)
    return list(dict.fromkeys(tags))


# ----------------------------------------------------------------------
# Analyzer
# ----------------------------------------------------------------------


class RepositoryAnalyzer(Analyzer):
    """Turns one GitHub repository into zero or one CatalogEntry."""

    def __init__(self, github: GitHubClient) -> None:
        self._github = github

    async def analyze(self, identifier: str) -> CatalogEntry | None:
        owner, _, repo = identifier.partition("/")
        if not owner or not repo:
            logger.warning("Not an owner/repo identifier: %s", identifier)
            return None
        return await self.analyze_repository(owner, repo)

    async def analyze_repository(self, owner: str, repo: str) -> CatalogEntry | None:
        full_name = f"{owner}/{repo}"
        logger.info("Analyzing repository: %s", full_name)
        try:
            repo_info = await self._github.get_repository(owner, repo)

            stars = repo_info.get("stargazers_count") or 0
            if stars < config.MIN_REPO_STARS:
                logger.debug("Skipping repository %s - too few stars (%d)", full_name, stars)
                return None

            package_json = await self._fetch_manifest(owner, repo)
            readme = await self._fetch_readme(owner, repo)
            metadata = await self._extract_metadata(owner, repo, package_json, readme)
            if not metadata.has_mcp:
                logger.debug("No MCP information found in %s", full_name)
                return None
            entry = self._build_entry(full_name, repo, repo_info, package_json, readme, metadata)
        except CatalogError as exc:
            logger.error("Error analyzing repository %s: %s", full_name, exc)
            return None
        except Exception:
            logger.exception("Unexpected error analyzing repository %s", full_name)
            return None

        logger.info("Successfully analyzed MCP server: %s", full_name)
        return entry

    @staticmethod
    def _build_entry(
        full_name: str,
        repo: str,
        repo_info: GitHubRepo,
        package_json: PackageJson | None,
        readme: str,
        metadata: MCPMetadata,
    ) -> CatalogEntry:
        template = generate_launch_template(metadata, package_json)
        required, optional = extract_parameters(template)
        fields = package_json or {}
        package_name = manifest.text(fields.get("name"))
        now = utcnow()

        return CatalogEntry(
            id=full_name,
            name=package_name or repo,
            description=(
                manifest.text(fields.get("description"))
                or manifest.text(repo_info.get("description"))
                or ""
            ),
            version=manifest.text(fields.get("version")) or "latest",
            author=_extract_author(package_json),
            license=_extract_license(package_json, repo_info),
            tags=_extract_tags(package_json, repo_info),
            readme=readme,
            tools=metadata.tools,
            resources=metadata.resources,
            prompts=metadata.prompts,
            config_template=template,
            required_params=required,
            optional_params=optional,
            source=SourceKind.GITHUB,
            source_url=repo_info.get("html_url") or f"https://github.com/{full_name}",
            package_name=package_name,
            popularity=repo_info.get("stargazers_count") or 0,
            verified=False,
            created_at=now,
            updated_at=now,
            last_researched_at=now,
        )

    # ------------------------------------------------------------------
    # Best-effort fetchers
    # ------------------------------------------------------------------

    async def _fetch_manifest(self, owner: str, repo: str) -> PackageJson | None:
        try:
            content = await self._github.download_raw_file(owner, repo, config.MANIFEST_FILE)
            data = json.loads(content)
        except (FetchError, ValueError):
            logger.debug("No package.json found in %s/%s", owner, repo)
            return None
        return data if isinstance(data, dict) else None

    async def _fetch_readme(self, owner: str, repo: str) -> str:
        for path in config.README_CANDIDATES:
            try:
                return await self._github.download_raw_file(owner, repo, path)
            except FetchError:
                continue
        return ""

    async def _extract_metadata(
        self,
        owner: str,
        repo: str,
        package_json: PackageJson | None,
        readme: str,
    ) -> MCPMetadata:
        metadata = MCPMetadata()

        if package_json and check_manifest(package_json):
            metadata.has_mcp = True
            metadata.command = manifest.text(package_json.get("name"))

        if readme:
            from_readme = extract_from_readme(readme)
            if from_readme.has_mcp:
                metadata.has_mcp = True
                metadata.command = from_readme.command or metadata.command
                metadata.args = from_readme.args or metadata.args
                metadata.env = from_readme.env or metadata.env
                metadata.transport = from_readme.transport or metadata.transport

        await self._scan_schema_files(owner, repo, metadata)
        return metadata

    async def _scan_schema_files(self, owner: str, repo: str, metadata: MCPMetadata) -> None:
        """Accumulate capabilities from the first few candidate files at the root."""
        try:
            listing = await self._github.get_directory_listing(owner, repo)
        except FetchError as exc:
            logger.debug("Could not access repository contents for %s/%s: %s", owner, repo, exc)
            return

        candidates = [
            f for f in listing
            if f.get("type", "file") == "file" and schema_files.is_candidate(f.get("name", ""))
        ]
        for file in candidates[: config.SCHEMA_FILE_SCAN_LIMIT]:
            path = file.get("path") or file.get("name", "")
            try:
                content = await self._github.download_raw_file(owner, repo, path)
            except FetchError as exc:
                logger.debug("Could not download MCP file %s: %s", path, exc)
                continue

            found = schema_files.extract_capabilities(content, file.get("name", path))
            if found is None:
                continue
            metadata.has_mcp = True
            metadata.tools.extend(found["tools"])
            metadata.resources.extend(found["resources"])
            metadata.prompts.extend(found["prompts"])
