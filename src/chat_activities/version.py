"""
Version constants for the activity extraction pipeline.

Component versions participate in request cache keys, so bumping one
invalidates the cached responses produced by the previous implementation.
"""

PACKAGE_VERSION = "1.0.0"

TOKENIZER_VERSION = "tiktoken-cl100k-1.0.0"
PROMPT_VERSION = "classify-prompt-2.0.0"
CACHE_SCHEMA_VERSION = "pipeline-cache-1"
CLUSTERING_VERSION = "clustering-1.0.0"


def get_component_versions() -> dict:
    """
    Get the versions of all cache-relevant components.

    Returns:
        Mapping of component name to version string
    """
    return {
        "package": PACKAGE_VERSION,
        "tokenizer": TOKENIZER_VERSION,
        "prompt": PROMPT_VERSION,
        "cache_schema": CACHE_SCHEMA_VERSION,
        "clustering": CLUSTERING_VERSION,
    }
