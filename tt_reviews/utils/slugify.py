"""URL slugs for equipment and player pages."""

import re
import unicodedata

MAX_SLUG_LENGTH = 120


def slugify(text: str, fallback: str = "item") -> str:
    """Convert a name to a URL-safe slug.

    Equipment and player names often carry accents or non-Latin scripts
    ("Fan Zhendong", "Tenergy 05", "樊振东"); characters that cannot be
    folded to ASCII are dropped, and ``fallback`` is returned when nothing
    usable is left.

    Args:
        text: Display name (e.g. "Butterfly Tenergy 05").
        fallback: Slug to use when the name has no ASCII-foldable characters.

    Returns:
        Slug such as "butterfly-tenergy-05".
    """
    folded = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    folded = re.sub(r"[^\w\s-]", "", folded.lower())
    slug = re.sub(r"[\s_-]+", "-", folded).strip("-")
    slug = slug[:MAX_SLUG_LENGTH].rstrip("-")
    return slug or fallback
