import re
import html
from ftfy import fix_text

# Runs of Unicode letters/digits; "_" counts as a separator.
TOKEN_RE = re.compile(r"[^\W_]+")


class Tokenizer:
    """
    Turns note text (and query text) into search terms.
    Uses ftfy + html to clean malformed text before splitting.

    What it does:
    - Turns HTML entities (&amp;, &eacute;) into regular chars
    - Funny looking chars like Ã© into regular chars
    - Splits on anything that is not a letter or digit, lowercases
    - Drops tokens shorter than min_length

    The same instance must be used for indexing and querying, otherwise a
    term indexed one way is looked up another way and recall breaks silently.
    """

    def __init__(self, min_length: int = 2):
        if min_length < 1:
            raise ValueError("min_length must be >= 1")
        self.min_length = min_length

    def tokenize(self, text: str | None) -> list[str]:
        """
        Clean and tokenize a raw text string.
        Returns [] for None, empty or punctuation-only text; never raises.
        """
        if not text:
            return []
        text = fix_text(html.unescape(text))
        return [t for t in TOKEN_RE.findall(text.lower()) if len(t) >= self.min_length]

    def __call__(self, text: str | None) -> list[str]:
        return self.tokenize(text)
