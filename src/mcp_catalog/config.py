"""Provider endpoints, scoring weights, TTLs, and detection keywords."""

from __future__ import annotations

# --- GitHub API ---
GITHUB_API_BASE = "https://api.github.com"
GITHUB_RAW_BASE = "https://raw.githubusercontent.com"
GITHUB_RATE_LIMIT_PER_HOUR = 5000  # authenticated
GITHUB_BRANCHES = ("main", "master")  # primary, then fallback
GITHUB_SEARCH_MAX_PAGE_SIZE = 100
USER_AGENT = "mcp-catalog/0.1.0"

# --- npm Registry API ---
NPM_REGISTRY_BASE = "https://registry.npmjs.org"
NPM_DOWNLOADS_BASE = "https://api.npmjs.org/downloads/point"
NPM_SEARCH_WEIGHTS = {
    "quality": 0.5,
    "popularity": 0.1,
    "maintenance": 0.5,
}
NPM_MAINTAINED_WITHIN_DAYS = 182  # ~6 months

# --- HTTP ---
REQUEST_TIMEOUT = 10.0  # seconds, per call

# --- Protocol keywords ---
PROTOCOL_ABBREVIATION = "mcp"
PROTOCOL_EXPANSION = "model context protocol"
PROTOCOL_SCOPE = "@modelcontextprotocol"
PROTOCOL_TAGS = ("mcp", "model-context-protocol")
SEARCH_TERMS = 'MCP OR "Model Context Protocol"'

# --- Repository analysis ---
MIN_REPO_STARS = 5  # below this a repo is never analyzed
MANIFEST_FILE = "package.json"
README_CANDIDATES = ("README.md", "readme.md", "README.MD")
SCHEMA_FILE_SCAN_LIMIT = 5
SCHEMA_FILE_EXTENSIONS = (".json", ".yaml", ".yml")
SCHEMA_ARRAY_FIELDS = ("tools", "resources", "prompts")
SECRET_VALUE_HINTS = ("key", "token", "secret")

# --- Package confidence points (name 40 + keywords 25 + description 20 + deps 15 = 100) ---
CONFIDENCE_POINTS = {
    "name_contains_abbreviation": 25,
    "name_contains_model_context": 15,
    "keyword_match": 10,            # per keyword
    "description_protocol": 20,
    "description_model_context": 10,
    "dependency_match": 8,          # per dependency
    "has_repository": 5,
}
CONFIDENCE_CAPS = {
    "keyword_match": 25,
    "dependency_match": 15,
}
CONFIDENCE_MAX_SCORE = 100
STALENESS_MULTIPLIER = 0.7

# Download bonus: (exclusive lower bound, points), checked top-down
DOWNLOAD_BONUS_TIERS = [
    (1000, 5, "high-download-count"),
    (100, 2, "moderate-download-count"),
]

CONFIDENCE_THRESHOLD = 0.3  # inclusive
DOWNLOAD_STATS_PERIOD = "last-month"

# --- Discovery ---
DEFAULT_QUERY = "MCP server"
DEFAULT_MAX_RESULTS = 50
DEFAULT_MIN_POPULARITY = 10
MAX_RESULTS_CEILING = 100
FORK_TO_STAR_RATIO = 2  # forks > stars * ratio counts as a fork farm

REGISTRY_SOURCE_TAG = "npm-package"
REGISTRY_PROTOCOL_TAGS = ("mcp", "npm", "model-context-protocol")

# --- Cache ---
DISCOVERY_CACHE_TTL = 3600        # 1 hour
ANALYSIS_CACHE_TTL = 6 * 3600     # 6 hours
DISCOVERY_CACHE_PREFIX = "research"
ANALYSIS_CACHE_PREFIX = "repo"

# --- Jobs ---
JOB_RETENTION_SECONDS = 3600
JOB_POLL_INTERVAL = 1.0

# --- Storage / Output ---
DATA_DIR = "data"
OUTPUT_DIR = "output"
CATALOG_DB_FILE = "data/catalog.db"
CACHE_FILE = "data/cache.json"
