"""Copy shader - plain texture copy, used to carry content across a resize."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...gl.Fbo import Fbo
from ...gl.Shader import Shader

if TYPE_CHECKING:
    from ...gl.NumpyDevice import Fragment


class Copy(Shader):

    def use(self, source: Fbo) -> None:
        self.bind()
        self.uniform_i("uTexture", source.attach(0))
        self.draw()

    @staticmethod
    def reference(frag: Fragment) -> np.ndarray:
        return frag.texture("uTexture", frag.u, frag.v)
