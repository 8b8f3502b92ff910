"""Named label colors.

Pairs are taken from the Gmail label palette so they can be pushed to
Gmail as-is; other stores just display them.
"""

import logging

from eisenbox.schemas.policy import LabelColor

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "gray"

_PALETTE: dict[str, LabelColor] = {
    "red": LabelColor(background="#fb4c2f", text="#ffffff"),
    "orange": LabelColor(background="#ffad47", text="#ffffff"),
    "yellow": LabelColor(background="#fad165", text="#000000"),
    "green": LabelColor(background="#16a765", text="#ffffff"),
    "teal": LabelColor(background="#2da2bb", text="#ffffff"),
    "blue": LabelColor(background="#4986e7", text="#ffffff"),
    "purple": LabelColor(background="#a479e2", text="#ffffff"),
    "pink": LabelColor(background="#f691b3", text="#ffffff"),
    "brown": LabelColor(background="#cca6ac", text="#ffffff"),
    "gray": LabelColor(background="#cccccc", text="#000000"),
    "light_blue": LabelColor(background="#98d7e4", text="#000000"),
    "dark_red": LabelColor(background="#ac2b16", text="#ffffff"),
}


def resolve_color(name: str | None) -> LabelColor:
    """Map a color name to its background/text pair.

    Unknown names fall back to gray.
    """
    if not name:
        return _PALETTE[DEFAULT_COLOR]
    key = name.strip().lower().replace(" ", "_").replace("-", "_")
    color = _PALETTE.get(key)
    if color is None:
        logger.warning("Unknown label color '%s', using %s", name, DEFAULT_COLOR)
        return _PALETTE[DEFAULT_COLOR]
    return color


def color_names() -> list[str]:
    return sorted(_PALETTE)
