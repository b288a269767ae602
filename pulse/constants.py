"""
Constants and configuration values for the AI Pulse news core.
"""

# Cache TTLs (seconds)
CACHE_DEFAULT_TTL = 1800  # 30 minutes
CACHE_HOT_TTL = 3600  # 1 hour
CACHE_WARM_TTL = 2700  # 45 minutes
CACHE_SUPER_HOT_TTL = 7200  # 2 hours
MEMORY_SWEEP_INTERVAL = 60.0  # In-process tier eviction sweep

# Hotness Score (viewCount * 1 + impactScore * 10 + bookmarkCount * 5)
HOTNESS_VIEW_WEIGHT = 1
HOTNESS_IMPACT_WEIGHT = 10
HOTNESS_BOOKMARK_WEIGHT = 5
HOTNESS_SUPER_HOT_THRESHOLD = 200
HOTNESS_HOT_THRESHOLD = 100
HOTNESS_WARM_THRESHOLD = 50

# Warm-up
WARMUP_BATCH_SIZE = 10

# Key Namespaces
AI_NEWS_KEY_PREFIX = "ai-news"
DEDUPE_SET_KEY = "ai-news:titles:dedupe"
DEDUPE_TTL = 86400  # 24 hours, reset on every write session
KEYSPACE_PATTERNS = ("ai-news:*", "source-health:*", "cache:*", "news:*")

# Redis
REDIS_DEFAULT_PORT = 6379
REDIS_CONNECT_TIMEOUT = 5.0
REDIS_KEYS_LIMIT = 100
REDIS_FRAGMENTATION_WARNING = 1.5
REDIS_KEY_COUNT_WARNING = 10000

# Generation
GENERATION_DEFAULT_COUNT = 8
GENERATION_MAX_ROUNDS = 3
GENERATION_SURPLUS = 5  # Extra items per round to absorb dedupe loss
GENERATION_MAX_REQUEST = 30  # Cap on items requested per round
GENERATION_CACHE_TTL = 1800  # Feed snapshot, refreshes faster than hot articles
GENERATION_TIME_BUCKET_FORMAT = "%Y-%m-%d-%H"
SYNTHETIC_URL_BASE = "https://ai-pulse.generated/news"

# LLM Configuration
LLM_API_URL = "https://open.bigmodel.cn/api/paas/v4/chat/completions"
LLM_MODEL = "glm-4"
LLM_TEMPERATURE = 0.3
LLM_TOP_P = 0.7
LLM_MAX_ATTEMPTS = 3
LLM_BACKOFF_BASE = 1.0  # Seconds; doubles per attempt, no jitter
LLM_REQUEST_TIMEOUT = 10.0
LLM_MAX_REQUESTS_PER_WINDOW = 30
LLM_RATE_WINDOW_SECONDS = 60.0
LLM_HTTP_USER_AGENT = "ai-pulse/0.1"
LLM_SYSTEM_PROMPT = (
    "You are a news analysis engine. Respond with valid JSON only. "
    "Do not wrap the JSON in markdown or add any commentary."
)
ANALYSIS_CONTENT_MAX_CHARS = 2000

# Validation
VALID_CATEGORIES = (
    "research",
    "product",
    "finance",
    "policy",
    "ethics",
    "robotics",
    "lifestyle",
    "entertainment",
    "meme",
    "other",
)
VALID_REGIONS = ("global", "north_america", "europe", "asia", "other")
DEFAULT_CATEGORY = "other"
DEFAULT_REGION = "global"
DEFAULT_IMPACT_SCORE = 5
IMPACT_SCORE_MIN = 1
IMPACT_SCORE_MAX = 10
MAX_TAGS = 5
MAX_SIMPLE_TAGS = 3
DEFAULT_SUMMARY_CHARS = 200

# Placeholders (never null downstream)
PLACEHOLDER_TITLE = "Untitled News"
PLACEHOLDER_SUMMARY = "No summary available"
PLACEHOLDER_WHY_IT_MATTERS = "Impact analysis not available"
PLACEHOLDER_SOURCE = "AI Generated"

# Keyword tags used when no analysis is available
SIMPLE_TAG_TERMS = (
    "AI",
    "ML",
    "GPT",
    "LLM",
    "neural",
    "deep learning",
    "ChatGPT",
    "OpenAI",
    "Google",
    "Microsoft",
)
