"""
Token counting for token-budgeted batching.

Uses tiktoken's cl100k_base encoding. Other providers tokenize differently,
but the counts are close enough to size batches.
"""

from typing import Optional

import structlog
import tiktoken

from ..version import TOKENIZER_VERSION


logger = structlog.get_logger(__name__)

DEFAULT_ENCODING = "cl100k_base"

# Fixed token overhead of the classification instructions (without messages)
SYSTEM_PROMPT_TOKENS = 350

# Leave room for the response; smaller batches are easier to validate
MAX_BATCH_TOKENS = 8000


class TokenEstimator:
    """
    Text -> token count using a fixed tiktoken encoding.

    The encoding is loaded on first use and kept for the lifetime of the
    instance.
    """

    version = TOKENIZER_VERSION

    def __init__(self, encoding_name: str = DEFAULT_ENCODING):
        self.encoding_name = encoding_name
        self._encoding: Optional[tiktoken.Encoding] = None

    @property
    def encoding(self) -> tiktoken.Encoding:
        if self._encoding is None:
            self._encoding = tiktoken.get_encoding(self.encoding_name)
            logger.debug("token_encoding_loaded", encoding=self.encoding_name)
        return self._encoding

    def count_tokens(self, text: str) -> int:
        """
        Count tokens in text.

        Examples:
            >>> TokenEstimator().count_tokens("")
            0
        """
        if not text:
            return 0
        return len(self.encoding.encode(text, disallowed_special=()))

    def __call__(self, text: str) -> int:
        return self.count_tokens(text)


def count_tokens(text: str, encoding_name: str = DEFAULT_ENCODING) -> int:
    """Count tokens with a throwaway estimator (tiktoken caches encodings itself)."""
    return TokenEstimator(encoding_name).count_tokens(text)
