"""Clear shader - scale a field by a constant (pressure decay between frames)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...gl.Fbo import Fbo
from ...gl.Shader import Shader

if TYPE_CHECKING:
    from ...gl.NumpyDevice import Fragment


class Clear(Shader):

    def use(self, source: Fbo, value: float) -> None:
        """Args:
            source: Field to scale
            value: Multiplier, 0 clears and 1 keeps the field
        """
        self.bind()
        self.uniform_i("uTexture", source.attach(0))
        self.uniform_f("value", value)
        self.draw()

    @staticmethod
    def reference(frag: Fragment) -> np.ndarray:
        return frag.uniform("value") * frag.texture("uTexture", frag.u, frag.v)
