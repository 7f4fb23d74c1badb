"""Advection shader - semi-Lagrangian transport with dissipation.

    coord  = vUv - dt * velocity(vUv) * texelSize
    result = source(coord) / (1 + dissipation * dt)

Velocity is in texels per second of the velocity grid. With MANUAL_FILTERING
both lookups use bilerp() on nearest-filtered textures, for devices without
linear filtering of float targets.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...gl.Fbo import Fbo
from ...gl.Shader import Shader

if TYPE_CHECKING:
    from ...gl.NumpyDevice import Fragment


def bilerp(frag: Fragment, sampler: str, u: np.ndarray, v: np.ndarray,
           texel_size: tuple[float, float]) -> np.ndarray:
    """Four texel-centre lookups blended by the fractional position."""
    tx, ty = texel_size
    su: np.ndarray = u / tx - 0.5
    sv: np.ndarray = v / ty - 0.5
    iu: np.ndarray = np.floor(su)
    iv: np.ndarray = np.floor(sv)
    fu: np.ndarray = (su - iu)[..., None]
    fv: np.ndarray = (sv - iv)[..., None]
    a = frag.texture(sampler, (iu + 0.5) * tx, (iv + 0.5) * ty)
    b = frag.texture(sampler, (iu + 1.5) * tx, (iv + 0.5) * ty)
    c = frag.texture(sampler, (iu + 0.5) * tx, (iv + 1.5) * ty)
    d = frag.texture(sampler, (iu + 1.5) * tx, (iv + 1.5) * ty)
    return (a * (1.0 - fu) + b * fu) * (1.0 - fv) + (c * (1.0 - fu) + d * fu) * fv


class Advection(Shader):

    def use(self, velocity: Fbo, source: Fbo, texel_size: tuple[float, float],
            dt: float, dissipation: float, dye_texel_size: tuple[float, float] | None = None) -> None:
        """Advect `source` along `velocity`.

        Args:
            velocity: Velocity field, sampled at unit 0
            source: Advected field, may be the same target as velocity
            texel_size: Texel size of the velocity grid
            dt: Timestep in seconds
            dissipation: Decay rate per second
            dye_texel_size: Texel size of `source`, only read by the MANUAL_FILTERING variant
        """
        self.bind()
        self.uniform_f("texelSize", *texel_size)
        if dye_texel_size is not None:
            self.uniform_f("dyeTexelSize", *dye_texel_size)
        velocity_slot: int = velocity.attach(0)
        self.uniform_i("uVelocity", velocity_slot)
        self.uniform_i("uSource", velocity_slot if source is velocity else source.attach(1))
        self.uniform_f("dt", dt)
        self.uniform_f("dissipation", dissipation)
        self.draw()

    @staticmethod
    def reference(frag: Fragment) -> np.ndarray:
        dt: float = frag.uniform("dt")
        texel_size = frag.uniform("texelSize")
        tx, ty = texel_size
        if frag.defined("MANUAL_FILTERING"):
            velocity = bilerp(frag, "uVelocity", frag.u, frag.v, texel_size)
            u = frag.u - dt * velocity[..., 0] * tx
            v = frag.v - dt * velocity[..., 1] * ty
            result = bilerp(frag, "uSource", u, v, frag.uniform("dyeTexelSize"))
        else:
            velocity = frag.texture("uVelocity", frag.u, frag.v)
            u = frag.u - dt * velocity[..., 0] * tx
            v = frag.v - dt * velocity[..., 1] * ty
            result = frag.texture("uSource", u, v)
        return result / (1.0 + frag.uniform("dissipation") * dt)
