"""
Keyword tables used to label normalized content.
Tables are ordered: the first matching label wins.
"""
from typing import Dict, Tuple

ARTICLE_CATEGORIES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Generative AI", (
        "gpt", "generative", "llm", "language model",
        "chatgpt", "openai", "claude", "gemini",
    )),
    ("Computer Vision", ("vision", "image", "detection", "opencv", "yolo", "cnn", "visual")),
    ("Machine Learning", (
        "machine learning", "ml", "neural network",
        "deep learning", "tensorflow", "pytorch",
    )),
    ("NLP", ("nlp", "natural language", "text processing", "sentiment", "bert", "transformer")),
    ("Research", ("research", "paper", "arxiv", "study", "experiment", "algorithm")),
    ("Industry News", ("company", "funding", "acquisition", "startup", "business", "market")),
    ("Ethics & Safety", ("ethics", "safety", "bias", "fairness", "responsible ai", "governance")),
)
DEFAULT_ARTICLE_CATEGORY = "General AI"

VIDEO_CATEGORIES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Tutorial", ("tutorial", "how to", "guide")),
    ("News", ("news", "update", "announcement")),
    ("Review", ("review", "comparison", "analysis")),
    ("Conference", ("conference", "talk", "presentation")),
)
DEFAULT_VIDEO_CATEGORY = "General"

BREAKING_KEYWORDS: Tuple[str, ...] = ("breaking", "urgent", "alert", "just in", "live", "developing")

# Region-qualified locale codes collapsed to their base language.
LANGUAGE_ALIASES: Dict[str, str] = {
    "en-us": "en", "en-gb": "en", "en-ca": "en", "en-au": "en",
    "es-es": "es", "es-mx": "es",
    "fr-fr": "fr", "fr-ca": "fr",
    "de-de": "de",
    "it-it": "it",
    "pt-pt": "pt", "pt-br": "pt",
    "ru-ru": "ru",
    "zh-cn": "zh", "zh-tw": "zh",
    "ja-jp": "ja",
    "ko-kr": "ko",
    "ar-sa": "ar",
    "hi-in": "hi",
}
SUPPORTED_LANGUAGES = frozenset(("en", "es", "fr", "de", "it", "pt", "ru", "zh", "ja", "ko", "ar", "hi"))
DEFAULT_LANGUAGE = "en"

MAX_TAGS = 10
WORDS_PER_MINUTE = 200
SUMMARY_CHARS = 300
