"""
Constants for image-for-me backends.

This module defines backend-specific constants including supported sizes,
model identifiers, request limits and the capability priority table used
when picking a backend.
"""

# ============================
# OpenAI Constants
# ============================

OPENAI_API_BASE_URL = "https://api.openai.com/v1"

DEFAULT_OPENAI_IMAGE_MODEL = "dall-e-3"
DEFAULT_OPENAI_VISION_MODEL = "gpt-4o"

# DALL-E 3 only accepts these three sizes
OPENAI_SIZES = [
    "1024x1024",  # Square
    "1024x1792",  # Portrait
    "1792x1024",  # Landscape
]

OPENAI_DESCRIBE_INSTRUCTION = (
    "Describe this image in detail. Include information about objects, people, "
    "colors, composition, style, and mood."
)

# ============================
# Google Gemini Constants
# ============================

DEFAULT_GEMINI_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_GEMINI_VISION_MODEL = "gemini-flash-latest"

# Aspect ratios accepted by Gemini image config
GEMINI_ASPECT_RATIOS = {
    "1:1": 1.0,
    "2:3": 2 / 3,
    "3:2": 3 / 2,
    "3:4": 3 / 4,
    "4:3": 4 / 3,
    "4:5": 4 / 5,
    "5:4": 5 / 4,
    "9:16": 9 / 16,
    "16:9": 16 / 9,
    "21:9": 21 / 9,
}

# ============================
# Hugging Face Constants
# ============================

HUGGINGFACE_INFERENCE_URL = "https://router.huggingface.co/hf-inference/models"
HUGGINGFACE_HUB_API_URL = "https://huggingface.co/api/models"

DEFAULT_HUGGINGFACE_MODEL = "stabilityai/stable-diffusion-xl-base-1.0"
HUGGINGFACE_CAPTION_MODEL = "Salesforce/blip-image-captioning-large"
HUGGINGFACE_CLASSIFICATION_MODEL = "google/vit-base-patch16-224"

# Stable Diffusion defaults
HUGGINGFACE_INFERENCE_STEPS = 50
HUGGINGFACE_GUIDANCE_SCALE = 7.5
HUGGINGFACE_MAX_TAGS = 10

# Keyword -> tag category, checked in order
TAG_CATEGORY_KEYWORDS = [
    ("animal", ["animal", "dog", "cat"]),
    ("person", ["person", "human", "face"]),
    ("vehicle", ["vehicle", "car", "bike"]),
    ("architecture", ["building", "house", "architecture"]),
    ("nature", ["nature", "landscape", "tree"]),
    ("food", ["food", "meal", "dish"]),
]

# ============================
# Shared Request Limits
# ============================

MAX_PROMPT_LENGTH = 4000
MAX_NEGATIVE_PROMPT_LENGTH = 1000
MIN_IMAGE_COUNT = 1
MAX_IMAGE_COUNT = 10
MIN_DIMENSION = 64
MAX_DIMENSION = 2048
MIN_ASPECT_RATIO = 0.25  # 1:4
MAX_ASPECT_RATIO = 4.0  # 4:1

DEFAULT_DIMENSION = 1024

# ============================
# Resilience Defaults
# ============================

MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 1.0  # seconds
DEFAULT_TIMEOUT = 60  # seconds
DEFAULT_AVAILABILITY_TIMEOUT = 5.0  # seconds per liveness check

# ============================
# Cache Defaults
# ============================

DEFAULT_CACHE_TTL = 3600  # seconds
DEFAULT_CACHE_MAX_SIZE = 100

# ============================
# Backend Selection
# ============================

# Preferred backend order per capability
CAPABILITY_PRIORITIES = {
    "generation": ["openai", "gemini", "huggingface"],
    "description": ["openai", "gemini", "huggingface"],
    "tagging": ["huggingface", "openai", "gemini"],
    "transparency": ["openai", "gemini", "huggingface"],
    "logo": ["openai", "gemini", "huggingface"],
}

# ============================
# Prompt Sanitization
# ============================

# Best-effort denylist, one pattern per category
UNSAFE_PROMPT_PATTERNS = [
    r"\b(?:hack|exploit|vulnerability|bypass|jailbreak)\b",
    r"\b(?:nsfw|explicit|adult|sexual|pornographic)\b",
    r"\b(?:violence|gore|death|suicide|self-harm)\b",
    r"\b(?:illegal|drugs|weapons|terrorism)\b",
]

# Transparency post-processing heuristic
TRANSPARENCY_BRIGHTNESS_THRESHOLD = 240
TRANSPARENCY_CHANNEL_TOLERANCE = 10

# ============================
# Description Post-processing
# ============================

BRIEF_DESCRIPTION_SENTENCES = 2

# Comprehensive descriptions shorter than this get an analysis note
COMPREHENSIVE_MIN_LENGTH = 200
COMPREHENSIVE_NOTE = (
    "This image would benefit from additional analysis of artistic elements, "
    "cultural context, and technical composition details."
)

# Sentences mentioning any of these words are kept for a focused description
DESCRIPTION_FOCUS_KEYWORDS = {
    "objects": ["object", "item", "thing", "furniture", "tool", "device", "equipment"],
    "people": ["person", "people", "man", "woman", "child", "face", "expression", "clothing", "hair"],
    "scene": ["setting", "location", "place", "environment", "background", "landscape", "indoor", "outdoor"],
    "colors": [
        "color", "colour", "red", "blue", "green", "yellow", "black", "white",
        "bright", "dark", "hue", "tone",
    ],
    "composition": [
        "composition", "framing", "perspective", "angle", "layout", "arrangement", "balance", "symmetry",
    ],
    "style": [
        "style", "artistic", "technique", "aesthetic", "mood", "atmosphere", "feeling", "art",
        "painting", "photography",
    ],
}
