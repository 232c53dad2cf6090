"""
Shared animation templates and copy-then-patch derivation.

Templates are vector animation documents (Lottie-style JSON) shared by
every consumer. They are never modified in place: each configuration
derives its own deep copy and patches that copy.
"""

import copy
import json
import logging
from numbers import Real
from typing import Any, Callable

from beatsync.config import VisualizerColor, VisualizerStyle

logger = logging.getLogger(__name__)

RGBA = tuple[float, float, float, float]
Patch = Callable[[dict[str, Any]], None]

# Normalized RGBA per palette entry
PALETTE: dict[VisualizerColor, RGBA] = {
    VisualizerColor.AMBER: (0.984, 0.749, 0.141, 1.0),  # #FBBF24
    VisualizerColor.AQUA: (0.176, 0.831, 0.749, 1.0),  # #2DD4BF
    VisualizerColor.CRIMSON: (0.957, 0.247, 0.369, 1.0),  # #F43F5E
}

PALETTE_HEX: dict[VisualizerColor, str] = {
    VisualizerColor.AMBER: "#FBBF24",
    VisualizerColor.AQUA: "#2DD4BF",
    VisualizerColor.CRIMSON: "#F43F5E",
}


def _static(value: Any) -> dict[str, Any]:
    return {"a": 0, "k": value}


def _ease_keyframes(points: list[tuple[int, list[float]]]) -> dict[str, Any]:
    """Animated property with ease-out keyframes at (frame, value) points."""
    keys = []
    for frame, value in points[:-1]:
        keys.append({
            "i": {"x": [0.667], "y": [1]},
            "o": {"x": [0.333], "y": [0]},
            "t": frame,
            "s": value,
        })
    frame, value = points[-1]
    keys.append({"t": frame, "s": value})
    return {"a": 1, "k": keys}


def _layer(name: str, shapes: list[dict[str, Any]], out_point: int) -> dict[str, Any]:
    return {
        "ddd": 0,
        "ind": 1,
        "ty": 4,
        "nm": name,
        "sr": 1,
        "ks": {
            "o": _static(100),
            "r": _static(0),
            "p": _static([250, 40, 0]),
            "a": _static([0, 0, 0]),
            "s": _static([100, 100, 100]),
        },
        "ao": 0,
        "shapes": shapes,
        "ip": 0,
        "op": out_point,
        "st": 0,
        "bm": 0,
    }


def _document(name: str, out_point: int, layers: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "v": "5.9.0",
        "fr": 30,
        "ip": 0,
        "op": out_point,
        "w": 500,
        "h": 80,
        "nm": name,
        "ddd": 0,
        "assets": [],
        "layers": layers,
    }


_WAVEFORM_DATA = _document("Waveform", 150, [
    _layer("Wave", [{
        "ty": "gr",
        "nm": "Repeater Group",
        "it": [
            {
                "ty": "sh",
                "nm": "Path 1",
                "ks": _static({
                    "i": [[0, 0], [0, 0]],
                    "o": [[0, 0], [0, 0]],
                    "v": [[0, -20], [0, 20]],
                    "c": False,
                }),
            },
            {
                "ty": "rp",
                "nm": "Repeater 1",
                "c": _static(100),
                "o": _static(0),
                "tr": {"s": _static(5), "e": _static(100), "o": _static(0)},
            },
            {"ty": "rd", "nm": "Round Corners 1", "r": _static(2)},
            {
                "ty": "tm",
                "s": _static(0),
                "e": _ease_keyframes([(0, [0]), (30, [99]), (150, [0])]),
                "o": _static(0),
                "m": 1,
            },
            {"ty": "fl", "nm": "Fill 1", "o": _static(100), "c": _static([0.827, 0.686, 0.227, 1]), "r": 1},
            {
                "ty": "tr",
                "p": _static([0, 0]),
                "a": _static([0, 0]),
                "s": _static([100, 100]),
                "r": _static(0),
                "o": _static(100),
            },
        ],
    }], out_point=180),
])

_BARS_DATA = _document("Bars", 15, [
    _layer("Bar", [{
        "ty": "gr",
        "nm": "Bar Group",
        "it": [
            {"ty": "rc", "d": 1, "nm": "Bar Shape", "s": _static([8, 0]), "p": _static([0, 40]), "r": _static(2)},
            {"ty": "tm", "s": _ease_keyframes([(0, [100, 0]), (7, [100, 100]), (15, [100, 0])])},
            {"ty": "fl", "c": _static([0.98, 0.73, 0.2, 1]), "o": _static(100), "r": 1},
            {"ty": "rp", "c": _static(50), "o": _static(0), "tr": {"p": _static([10, 0])}},
        ],
    }], out_point=15),
])

_PARTICLES_DATA = _document("Particles", 20, [
    _layer("Particle Burst", [{
        "ty": "gr",
        "nm": "Particle Group",
        "it": [
            {"ty": "el", "d": 1, "s": _static([5, 5]), "p": _static([0, 0])},
            {"ty": "fl", "c": _static([1, 0.8, 0.4, 1]), "o": _static(100), "r": 1},
            {
                "ty": "tr",
                "s": _ease_keyframes([(0, [0, 0]), (20, [200, 200])]),
                "o": _ease_keyframes([(5, [100]), (20, [0])]),
            },
            {"ty": "rp", "c": _static(12), "o": _static(0), "tr": {"r": _static(30)}},
        ],
    }], out_point=20),
])


class AnimationTemplate:
    """
    Read-only animation document shared between consumers.

    The template keeps a private copy of its data; every accessor returns
    a fresh deep copy so no caller ever holds an alias to the original.
    """

    def __init__(self, name: str, data: dict[str, Any]):
        self.name = name
        self._data = copy.deepcopy(data)

    @property
    def total_frames(self) -> float:
        """Playable length in frames (out point minus in point)."""
        return float(self._data["op"] - self._data["ip"])

    @property
    def frame_rate(self) -> float:
        return float(self._data["fr"])

    @property
    def data(self) -> dict[str, Any]:
        """A deep copy of the template document."""
        return copy.deepcopy(self._data)

    def to_json(self) -> str:
        return json.dumps(self._data, sort_keys=True)

    def derive(self, *patches: Patch) -> dict[str, Any]:
        """
        Build a derived asset by patching a deep copy of the template.

        Patches are applied in order and mutate only the copy.
        """
        asset = copy.deepcopy(self._data)
        for patch in patches:
            patch(asset)
        return asset


TEMPLATES: dict[VisualizerStyle, AnimationTemplate] = {
    VisualizerStyle.WAVEFORM: AnimationTemplate("Waveform", _WAVEFORM_DATA),
    VisualizerStyle.BARS: AnimationTemplate("Bars", _BARS_DATA),
    VisualizerStyle.PARTICLES: AnimationTemplate("Particles", _PARTICLES_DATA),
}


def palette_rgba(color: VisualizerColor | str) -> RGBA:
    return PALETTE[VisualizerColor.parse(color)]


def _is_color_field(node: dict[str, Any]) -> bool:
    """True for ``{"c": {"k": [r, g, b, a]}}`` with components in [0, 1]."""
    prop = node.get("c")
    if not isinstance(prop, dict):
        return False
    value = prop.get("k")
    return (
        isinstance(value, list)
        and len(value) == 4
        and all(isinstance(v, Real) and not isinstance(v, bool) and 0 <= v <= 1 for v in value)
    )


def _replace_colors(node: Any, rgba: RGBA) -> None:
    if isinstance(node, dict):
        if _is_color_field(node):
            node["c"]["k"] = list(rgba)
        for value in node.values():
            _replace_colors(value, rgba)
    elif isinstance(node, list):
        for value in node:
            _replace_colors(value, rgba)


def recolor(color: VisualizerColor | str) -> Patch:
    """Patch rewriting every RGBA color field in the layers."""
    rgba = palette_rgba(color)

    def patch(asset: dict[str, Any]) -> None:
        _replace_colors(asset.get("layers", []), rgba)

    return patch


def stroke(width: float, color: VisualizerColor | str) -> Patch:
    """Patch replacing the first shape group's fill with a stroke of ``width``."""
    rgba = palette_rgba(color)

    def patch(asset: dict[str, Any]) -> None:
        try:
            items = asset["layers"][0]["shapes"][0]["it"]
        except (KeyError, IndexError, TypeError):
            logger.error("Template %r has no shape group to stroke", asset.get("nm"))
            return
        for i, item in enumerate(items):
            if item.get("ty") == "fl":
                items[i] = {
                    "ty": "st",
                    "nm": "Dynamic Stroke",
                    "o": _static(100),
                    "c": _static(list(rgba)),
                    "w": _static(width),
                }
                return

    return patch


def build_asset(
    style: VisualizerStyle | str,
    color: VisualizerColor | str,
    thickness: float = 3.0,
) -> dict[str, Any]:
    """
    Derive the configured animation asset for a rendering variant.

    Waveform is stroked at ``thickness``; Bars and Particles are recolored.
    """
    style = VisualizerStyle.parse(style)
    template = TEMPLATES[style]
    if style is VisualizerStyle.WAVEFORM:
        return template.derive(stroke(thickness, color))
    return template.derive(recolor(color))
