"""Display shader - present the dye field.

Variants:
    SHADING  fake lighting from the dye brightness gradient
    BLOOM    add a gamma corrected bloom texture

Alpha is the brightest channel, so dark dye lets the background through.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...gl.Fbo import Fbo
from ...gl.Shader import Shader

if TYPE_CHECKING:
    from ...gl.NumpyDevice import Fragment


def linear_to_gamma(color: np.ndarray) -> np.ndarray:
    color = np.maximum(color, 0.0)
    return np.maximum(1.055 * np.power(color, 0.416666667) - 0.055, 0.0)


class Display(Shader):

    def use(self, dye: Fbo, texel_size: tuple[float, float], bloom: Fbo | None = None) -> None:
        """Args:
            dye: Dye field to present
            texel_size: One pixel of the destination, for the SHADING normal
            bloom: Bloom texture, only read by the BLOOM variant
        """
        self.bind()
        self.uniform_f("texelSize", *texel_size)
        self.uniform_i("uTexture", dye.attach(0))
        if bloom is not None:
            self.uniform_i("uBloom", bloom.attach(1))
        self.draw()

    @staticmethod
    def reference(frag: Fragment) -> np.ndarray:
        c: np.ndarray = frag.texture("uTexture", frag.u, frag.v)[..., :3]

        if frag.defined("SHADING"):
            vL, vR, vT, vB = frag.neighbours()
            lc = np.linalg.norm(frag.texture("uTexture", *vL)[..., :3], axis=-1)
            rc = np.linalg.norm(frag.texture("uTexture", *vR)[..., :3], axis=-1)
            tc = np.linalg.norm(frag.texture("uTexture", *vT)[..., :3], axis=-1)
            bc = np.linalg.norm(frag.texture("uTexture", *vB)[..., :3], axis=-1)
            dx: np.ndarray = rc - lc
            dy: np.ndarray = tc - bc
            nz: float = float(np.hypot(*frag.uniform("texelSize")))
            n_dot_l: np.ndarray = nz / np.sqrt(dx * dx + dy * dy + nz * nz)
            diffuse: np.ndarray = np.clip(n_dot_l + 0.7, 0.7, 1.0)
            c = c * diffuse[..., None]

        if frag.defined("BLOOM"):
            c = c + linear_to_gamma(frag.texture("uBloom", frag.u, frag.v)[..., :3])

        return frag.vec4(c[..., 0], c[..., 1], c[..., 2], c.max(axis=-1))
