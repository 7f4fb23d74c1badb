"""Color shader - solid fill."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...gl.Shader import Shader

if TYPE_CHECKING:
    from ...gl.NumpyDevice import Fragment


class Color(Shader):

    def use(self, r: float, g: float, b: float, a: float = 1.0) -> None:
        self.bind()
        self.uniform_f("color", r, g, b, a)
        self.draw()

    @staticmethod
    def reference(frag: Fragment) -> np.ndarray:
        return np.asarray(frag.uniform("color"), dtype=np.float32)
