"""Tests for GitHub repository analysis."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from fakes import FakeGitHub
from mcp_catalog.analyzers.repository import (
    RepositoryAnalyzer,
    check_manifest,
    extract_from_readme,
    infer_param_type,
)
from mcp_catalog.output.models import ParamType, SourceKind, Transport

FIXTURES = Path(__file__).parent / "fixtures"


def _fixture(name: str) -> str:
    return (FIXTURES / name).read_text()


def _repo(full_name: str, stars: int = 50, **extra) -> dict:
    owner, name = full_name.split("/")
    return {
        "name": name,
        "full_name": full_name,
        "description": f"{name} repository",
        "html_url": f"https://github.com/{full_name}",
        "stargazers_count": stars,
        "forks_count": 0,
        "topics": [],
        **extra,
    }


def _analyze(github: FakeGitHub, identifier: str):
    return asyncio.run(RepositoryAnalyzer(github).analyze(identifier))


# --- Filtering ---


def test_low_star_repo_is_never_analyzed():
    github = FakeGitHub(
        repos={"acme/tiny": _repo("acme/tiny", stars=4)},
        files={"acme/tiny/README.md": "An MCP server"},
    )
    assert _analyze(github, "acme/tiny") is None
    assert github.calls == [("repo", "acme/tiny")]


def test_repo_fetch_failure_returns_none():
    github = FakeGitHub()
    assert _analyze(github, "acme/missing") is None


def test_repo_without_any_signal_returns_none():
    github = FakeGitHub(
        repos={"acme/plain": _repo("acme/plain")},
        files={"acme/plain/README.md": "# A calculator\nAdds numbers."},
        listings={"acme/plain": [{"name": "index.ts", "path": "index.ts", "type": "file"}]},
    )
    assert _analyze(github, "acme/plain") is None


# --- Manifest detector ---


def test_manifest_detection_builds_entry():
    github = FakeGitHub(
        repos={"acme/fs-mcp": json.loads(_fixture("repo_fs_mcp.json"))},
        files={"acme/fs-mcp/package.json": _fixture("package_fs_mcp.json")},
    )
    entry = _analyze(github, "acme/fs-mcp")

    assert entry is not None
    assert entry.id == "acme/fs-mcp"
    assert entry.name == "@acme/fs-mcp"
    assert entry.description == "Read and write local files"
    assert entry.version == "0.4.2"
    assert entry.author == "Acme Tools"
    assert entry.license == "Apache-2.0"
    assert entry.source is SourceKind.GITHUB
    assert entry.source_url == "https://github.com/acme/fs-mcp"
    assert entry.package_name == "@acme/fs-mcp"
    assert entry.popularity == 50
    assert entry.verified is False
    assert entry.readme == ""
    # Topics, then manifest keywords, then protocol tags; no duplicates.
    assert entry.tags == ["filesystem", "mcp", "model-context-protocol"]
    assert entry.config_template.command == "@acme/fs-mcp"
    assert entry.config_template.args == ["dist/index.js"]
    assert entry.config_template.transport is Transport.STDIO
    assert entry.required_params == []
    assert entry.optional_params == []


def test_manifest_fields_fall_back_to_repo():
    github = FakeGitHub(
        repos={"acme/bare": _repo("acme/bare", license={"name": "MIT License"})},
        files={"acme/bare/README.md": "Implements the Model Context Protocol."},
    )
    entry = _analyze(github, "acme/bare")

    assert entry.name == "bare"
    assert entry.description == "bare repository"
    assert entry.version == "latest"
    assert entry.author == "Unknown"
    assert entry.license == "MIT License"
    assert entry.package_name is None
    assert entry.config_template.command == "node"
    assert entry.config_template.args == []


@pytest.mark.parametrize(
    "manifest, expected",
    [
        ({"dependencies": {"@modelcontextprotocol/sdk": "1.0.0"}}, True),
        ({"devDependencies": {"mcp-test-kit": "1"}}, True),
        ({"keywords": ["Model Context Protocol"]}, True),
        ({"description": "An MCP bridge"}, True),
        ({"dependencies": ["@modelcontextprotocol/sdk"]}, True),
        ({"keywords": "tools, mcp"}, True),
        ({"keywords": "compact", "description": 3}, False),
        ({"description": "A calculator", "keywords": ["math"]}, False),
        ({}, False),
    ],
)
def test_check_manifest(manifest, expected):
    assert check_manifest(manifest) is expected


def test_malformed_manifest_fields_are_tolerated():
    github = FakeGitHub(
        repos={"acme/odd": _repo("acme/odd")},
        files={"acme/odd/package.json": json.dumps({
            "name": "odd-server",
            "version": 2,
            "keywords": "mcp, files",
            "dependencies": ["@modelcontextprotocol/sdk"],
            "author": ["Ada"],
        })},
    )
    entry = _analyze(github, "acme/odd")

    assert entry is not None
    assert entry.version == "2"
    assert entry.author == "Unknown"
    assert entry.tags == ["mcp", "files", "model-context-protocol"]


def test_unexpected_analysis_error_returns_none():
    class ExplodingGitHub(FakeGitHub):
        async def get_directory_listing(self, owner, repo, path=""):
            raise TypeError("unexpected payload")

    github = ExplodingGitHub(
        repos={"acme/boom": _repo("acme/boom")},
        files={"acme/boom/README.md": "An MCP server"},
    )
    assert _analyze(github, "acme/boom") is None


# --- README detector ---


def test_readme_extracts_launch_config():
    meta = extract_from_readme(_fixture("readme_weather.md"))

    assert meta.has_mcp is True
    assert meta.command == "npx"
    assert meta.args == ["-y", "weather-mcp"]
    assert meta.env == {
        "WEATHER_API_KEY": "",
        "CACHE_DIR": "/tmp/weather",
        "MAX_DAYS": "7",
        "VERBOSE": "false",
    }
    assert meta.transport is Transport.STDIO


def test_readme_loose_command_match():
    readme = (
        "MCP server\n\n```json\n"
        '{\n  "mcpServers": {\n    "x": {\n      "command": "uvx", // run it\n    }\n  }\n}\n```\n'
    )
    meta = extract_from_readme(readme)
    assert meta.command == "uvx"
    assert meta.args is None


def test_readme_sse_transport():
    meta = extract_from_readme("An MCP server using Server-Sent Events.")
    assert meta.transport is Transport.SSE
    # "sse" inside other words does not count.
    assert extract_from_readme("MCP assessment classes").transport is None


def test_readme_without_mention():
    assert extract_from_readme("# Calculator").has_mcp is False


def test_readme_env_becomes_parameters():
    github = FakeGitHub(
        repos={"acme/weather": _repo("acme/weather")},
        files={"acme/weather/README.md": _fixture("readme_weather.md")},
    )
    entry = _analyze(github, "acme/weather")

    assert entry.config_template.command == "npx"
    assert [p.key for p in entry.required_params] == ["WEATHER_API_KEY"]
    assert entry.required_params[0].default is None
    optional = {p.key: p for p in entry.optional_params}
    assert optional["CACHE_DIR"].type is ParamType.PATH
    assert optional["CACHE_DIR"].default == "/tmp/weather"
    assert optional["MAX_DAYS"].type is ParamType.NUMBER
    assert optional["VERBOSE"].type is ParamType.BOOLEAN
    assert optional["VERBOSE"].description == "Environment variable for VERBOSE"


def test_readme_tries_lowercase_name():
    github = FakeGitHub(
        repos={"acme/lower": _repo("acme/lower")},
        files={"acme/lower/readme.md": "An MCP server."},
    )
    entry = _analyze(github, "acme/lower")
    assert entry.readme == "An MCP server."
    readme_calls = [c for c in github.calls if c[0] == "file" and "readme" in c[1].lower()]
    assert readme_calls == [("file", "acme/lower/README.md"), ("file", "acme/lower/readme.md")]


# --- Schema-file detector ---


def test_schema_files_accumulate_across_files():
    listing = [
        {"name": "mcp.json", "path": "mcp.json", "type": "file"},
        {"name": "prompts.yaml", "path": "prompts.yaml", "type": "file"},
        {"name": "mcp", "path": "mcp", "type": "dir"},
        {"name": "index.ts", "path": "index.ts", "type": "file"},
    ]
    github = FakeGitHub(
        repos={"acme/schemas": _repo("acme/schemas")},
        listings={"acme/schemas": listing},
        files={
            "acme/schemas/mcp.json": json.dumps({"tools": [{"name": "a"}], "resources": [{"uri": "r"}]}),
            "acme/schemas/prompts.yaml": "prompts: [summarize]\ntools: [b]\n",
        },
    )
    entry = _analyze(github, "acme/schemas")

    assert entry is not None
    assert entry.tools == [{"name": "a"}, "b"]
    assert entry.resources == [{"uri": "r"}]
    assert entry.prompts == ["summarize"]


def test_schema_scan_limited_to_five_files():
    listing = [{"name": f"s{i}.json", "path": f"s{i}.json", "type": "file"} for i in range(8)]
    github = FakeGitHub(
        repos={"acme/many": _repo("acme/many")},
        listings={"acme/many": listing},
    )
    assert _analyze(github, "acme/many") is None
    schema_calls = [c for c in github.calls if c[0] == "file" and c[1].endswith(".json") and "/s" in c[1]]
    assert len(schema_calls) == 5


# --- Parameter types ---


@pytest.mark.parametrize(
    "value, expected",
    [
        ("", ParamType.STRING),
        ("your-api-key", ParamType.SECRET),
        ("TOKEN_HERE", ParamType.SECRET),
        ("/var/data", ParamType.PATH),
        ("C:\\data", ParamType.PATH),
        ("config.yaml", ParamType.PATH),
        ("1.5", ParamType.PATH),
        ("8080", ParamType.NUMBER),
        ("TRUE", ParamType.BOOLEAN),
        ("info", ParamType.STRING),
    ],
)
def test_infer_param_type(value, expected):
    assert infer_param_type(value) is expected
