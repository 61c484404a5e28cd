"""UI colours read from the Omarchy system theme (a kitty.conf file)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

Color = Tuple[int, int, int]

_HEX_DIGITS = re.compile(r"[0-9A-Fa-f]+")


def _default_theme_path() -> Path:
    return Path.home() / ".config" / "omarchy" / "current" / "theme" / "kitty.conf"


def parse_hex_color(value: str) -> Optional[Color]:
    """Parse ``#RRGGBB`` or ``#RGB`` into an RGB tuple, or return None."""
    digits = value.strip().lstrip("#")
    if not _HEX_DIGITS.fullmatch(digits):
        return None
    if len(digits) == 6:
        return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))
    if len(digits) == 3:
        return tuple(int(ch, 16) * 17 for ch in digits)  # type: ignore[return-value]
    return None


def parse_kitty_conf(content: str) -> dict[str, Color]:
    """Collect every ``key #hexcolor`` entry of a kitty.conf text."""
    colors: dict[str, Color] = {}
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split(maxsplit=1)
        if len(parts) != 2:
            continue
        key, value = parts[0].strip(), parts[1].strip()
        color = parse_hex_color(value)
        if color is not None:
            colors[key] = color
    return colors


def _pick(colors: Mapping[str, Color], *keys: str, default: Color) -> Color:
    for key in keys:
        if key in colors:
            return colors[key]
    return default


@dataclass(frozen=True)
class Theme:
    """Colours used by the interface."""

    accent: Color = (250, 179, 135)
    accent_bright: Color = (245, 194, 231)
    danger: Color = (243, 139, 168)
    danger_bright: Color = (243, 139, 168)
    success: Color = (166, 218, 149)
    warning: Color = (250, 179, 135)
    text: Color = (205, 214, 244)
    text_dim: Color = (147, 153, 178)
    bg: Color = (30, 30, 46)
    bg_selected: Color = (69, 71, 90)
    inactive: Color = (88, 91, 112)
    header: Color = (243, 139, 168)

    @classmethod
    def from_colors(cls, colors: Mapping[str, Color]) -> "Theme":
        """Map kitty colour names onto theme roles, with Omarchy fallbacks."""
        accent = _pick(colors, "color2", "color10", default=(255, 193, 7))
        accent_bright = _pick(colors, "color10", "color2", default=(255, 193, 7))
        danger = _pick(colors, "color1", default=(211, 95, 95))
        danger_bright = _pick(colors, "color9", default=(185, 28, 28))
        warning = _pick(colors, "color4", "color12", default=(230, 142, 13))
        text = _pick(colors, "foreground", default=(190, 190, 190))
        text_dim = _pick(colors, "color8", default=(138, 138, 141))
        bg = _pick(colors, "background", default=(18, 18, 18))
        bg_selected = _pick(
            colors, "selection_background", "color0", default=(51, 51, 51)
        )
        inactive = _pick(colors, "inactive_border_color", "color8", default=(89, 89, 89))
        return cls(
            accent=accent,
            accent_bright=accent_bright,
            danger=danger,
            danger_bright=danger_bright,
            success=accent,
            warning=warning,
            text=text,
            text_dim=text_dim,
            bg=bg,
            bg_selected=bg_selected,
            inactive=inactive,
            header=danger,
        )

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Theme":
        """Load the system theme, falling back to the built-in colours."""
        theme_path = Path(path) if path is not None else _default_theme_path()
        try:
            content = theme_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError, RuntimeError):
            return cls()
        colors = parse_kitty_conf(content)
        if not colors:
            return cls()
        return cls.from_colors(colors)