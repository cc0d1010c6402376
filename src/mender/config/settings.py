"""Configuration settings for Mender."""

import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Server configuration
SERVER_HOST = os.getenv("MENDER_HOST", "0.0.0.0")
SERVER_PORT = int(os.getenv("MENDER_PORT", "8000"))

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Repository data provider configuration
REPO_CLIENT = os.getenv("REPO_CLIENT", "github")
GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com")
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN")
LOCAL_REPO_PATH = os.getenv("LOCAL_REPO_PATH", ".")
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "10"))
DEFAULT_BRANCH = os.getenv("DEFAULT_BRANCH", "main")

# Repository analysis limits
MAX_ANALYZED_FILES = int(os.getenv("MAX_ANALYZED_FILES", "200"))

# Binary and asset files never worth reading as text
SKIPPED_EXTENSIONS = [
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".ico",
    ".svg",
    ".webp",
    ".pdf",
    ".zip",
    ".gz",
    ".tar",
    ".jar",
    ".woff",
    ".woff2",
    ".ttf",
    ".eot",
    ".mp3",
    ".mp4",
    ".lock",
    ".min.js",
    ".map",
    ".pyc",
    ".so",
    ".dll",
    ".exe",
]

# Candidate location
MAX_MATCHES = int(os.getenv("MAX_MATCHES", "20"))
MIN_SIGNAL_LENGTH = 3
CONTEXT_LINES_BEFORE = 5
CONTEXT_LINES_AFTER = 10
SEARCH_FALLBACK_QUERIES = int(os.getenv("SEARCH_FALLBACK_QUERIES", "3"))

# Segmentation and patching
FALLBACK_EXCERPT_LINES = 20
MAX_IMPACTED_FILES = int(os.getenv("MAX_IMPACTED_FILES", "5"))

# Run registry for the HTTP layer
MAX_STORED_RUNS = int(os.getenv("MAX_STORED_RUNS", "20"))
