from __future__ import annotations

from collections.abc import Iterable, Iterator


type Category = str | Iterable[Category]
type MaybeCategory = str | None | Iterable[MaybeCategory]
type CategoryList = tuple[str, ...]


def _flatten(category: MaybeCategory) -> Iterator[str]:
    if category is None:
        return
    if isinstance(category, str):
        if category:
            yield category
        return
    for item in category:
        yield from _flatten(item)


def get_category_list(category: MaybeCategory) -> CategoryList:
    """Normalize a category into a flat tuple of non-empty segments.

    Nested sequences are flattened depth-first, left to right. ``None`` and
    empty strings are dropped, so ``["a", [None, ["", "b"]]]`` and
    ``("a", "b")`` name the same logger.
    """
    return tuple(_flatten(category))
