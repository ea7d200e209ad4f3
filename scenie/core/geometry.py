from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Position:
    """A 2D coordinate: screen pixels for pointers, container percent for layout."""

    x: float
    y: float

    def __sub__(self, other: Position) -> Position:
        return Position(self.x - other.x, self.y - other.y)


@dataclass(frozen=True, slots=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center(self) -> Position:
        return Position(self.left + self.width / 2, self.top + self.height / 2)

    def contains(self, point: Position) -> bool:
        # Boundaries count as inside.
        return self.left <= point.x <= self.right and self.top <= point.y <= self.bottom

    def to_percent(self, point: Position) -> Position:
        """Express a screen point as percentages of this rect."""

        if self.width <= 0 or self.height <= 0:
            return Position(0.0, 0.0)
        return Position(
            (point.x - self.left) / self.width * 100,
            (point.y - self.top) / self.height * 100,
        )


def parse_aspect_ratio(value: str | float) -> float:
    """Parse `"a/b"` or a plain number into a/b.

    Raises ValueError on malformed or non-positive ratios.
    """

    if isinstance(value, (int, float)):
        ratio = float(value)
    else:
        text = value.strip()
        if "/" in text:
            num, _, denom = text.partition("/")
            if float(denom) == 0:
                raise ValueError(f"Aspect ratio has a zero denominator: {value!r}")
            ratio = float(num) / float(denom)
        else:
            ratio = float(text)
    if ratio <= 0:
        raise ValueError(f"Aspect ratio must be positive: {value!r}")
    return ratio


def parse_percent(value: str | float | None, *, default: float = 0.0) -> float:
    """Read a CSS-ish length like `"12.5%"` (or a bare number) as a float."""

    if value is None:
        return default
    if isinstance(value, (int, float)):
        return float(value)
    text = value.strip().removesuffix("%").strip()
    if not text:
        return default
    return float(text)
