"""Pointer state for splat input.

Coordinates are normalized texture space: x in [0,1] left to right, y in
[0,1] bottom to top. Windowing code converts from pixels before calling in.
"""

from dataclasses import dataclass, field


def correct_delta_x(delta: float, aspect: float) -> float:
    if aspect < 1.0:
        delta *= aspect
    return delta


def correct_delta_y(delta: float, aspect: float) -> float:
    if aspect > 1.0:
        delta /= aspect
    return delta


def correct_radius(radius: float, aspect: float) -> float:
    """Widen the splat on landscape canvases so it stays round after the aspect stretch."""
    if aspect > 1.0:
        radius *= aspect
    return radius


@dataclass
class Pointer:
    id: int = -1
    texcoord_x: float = 0.0
    texcoord_y: float = 0.0
    prev_texcoord_x: float = 0.0
    prev_texcoord_y: float = 0.0
    delta_x: float = 0.0
    delta_y: float = 0.0
    down: bool = False
    moved: bool = False
    color: tuple[float, float, float] = field(default=(30.0, 0.0, 300.0))

    def press(self, pointer_id: int, x: float, y: float, color: tuple[float, float, float]) -> None:
        self.id = pointer_id
        self.down = True
        self.moved = False
        self.texcoord_x = x
        self.texcoord_y = y
        self.prev_texcoord_x = x
        self.prev_texcoord_y = y
        self.delta_x = 0.0
        self.delta_y = 0.0
        self.color = color

    def move(self, x: float, y: float, aspect: float) -> None:
        """Track a move while pressed; moves of a released pointer are ignored."""
        if not self.down:
            return
        self.prev_texcoord_x = self.texcoord_x
        self.prev_texcoord_y = self.texcoord_y
        self.texcoord_x = x
        self.texcoord_y = y
        self.delta_x = correct_delta_x(self.texcoord_x - self.prev_texcoord_x, aspect)
        self.delta_y = correct_delta_y(self.texcoord_y - self.prev_texcoord_y, aspect)
        self.moved = abs(self.delta_x) > 0.0 or abs(self.delta_y) > 0.0

    def release(self) -> None:
        self.down = False
