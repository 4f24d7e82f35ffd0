"""
Application configuration and environment variables
"""
import os

# Wikipedia API configuration
WIKIPEDIA_API_URL = os.environ.get('WIKIPEDIA_API_URL', 'https://en.wikipedia.org/w/api.php')
WIKIPEDIA_REST_URL = os.environ.get('WIKIPEDIA_REST_URL', 'https://en.wikipedia.org/w/rest.php/v1')
USER_AGENT = os.environ.get('USER_AGENT', 'WikipediaSixDegrees/1.0 (Educational Project)')

# HTTP client timeouts in seconds
HTTP_CONNECT_TIMEOUT = float(os.environ.get('HTTP_CONNECT_TIMEOUT', 5.0))
HTTP_READ_TIMEOUT = float(os.environ.get('HTTP_READ_TIMEOUT', 30.0))

# Link pages are served 500 at a time; cap continuation requests per article
LINKS_MAX_BATCHES = int(os.environ.get('LINKS_MAX_BATCHES', 10))

# Namespace prefixes that never count as article links
EXCLUDED_PREFIXES = (
    "Wikipedia:",
    "Help:",
    "Template:",
    "Category:",
)

# Search configuration
MAX_DEPTH = int(os.environ.get('MAX_DEPTH', 6))
MAX_DEPTH_LIMIT = 10
PROGRESS_INTERVAL = int(os.environ.get('PROGRESS_INTERVAL', 10))
SEARCH_TIMEOUT_SECONDS = int(os.environ.get('SEARCH_TIMEOUT_SECONDS', 300))

# API configuration
API_TITLE = "Wikipedia Six Degrees API"
API_VERSION = "1.0.0"

RATE_LIMIT_ENABLED = os.environ.get('RATE_LIMIT_ENABLED', '1') not in ('0', 'false', 'False')

# CORS origins
CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
