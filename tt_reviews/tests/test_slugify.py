"""
Tests for URL slug generation.
"""
import pytest
from tt_reviews.utils.slugify import MAX_SLUG_LENGTH, slugify


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Butterfly Tenergy 05", "butterfly-tenergy-05"),
        ("Dignics 09C", "dignics-09c"),
        ("Timo  Boll ALC", "timo-boll-alc"),
        ("Jörgen Persson", "jorgen-persson"),
        ("Hurricane_3 -- Neo", "hurricane-3-neo"),
        ("  Viscaria!  ", "viscaria"),
    ],
)
def test_slugify(name, expected):
    assert slugify(name) == expected


def test_unfoldable_name_uses_fallback():
    assert slugify("樊振东", fallback="player") == "player"
    assert slugify("") == "item"


def test_long_names_are_truncated():
    slug = slugify("a" * 300)
    assert len(slug) == MAX_SLUG_LENGTH
