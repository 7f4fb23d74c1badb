"""Vorticity shader - vorticity confinement force.

Pushes velocity along the normalized gradient of |curl|, scaled by the local
curl and the `curl` strength. The result is clamped to +-1000 per component.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ...gl.Fbo import Fbo
from ...gl.Shader import Shader

if TYPE_CHECKING:
    from ...gl.NumpyDevice import Fragment

VELOCITY_LIMIT: float = 1000.0


class Vorticity(Shader):

    def use(self, velocity: Fbo, curl: Fbo, texel_size: tuple[float, float],
            strength: float, dt: float) -> None:
        """Args:
            velocity: Velocity field to add the force to
            curl: Curl field from the Curl pass
            texel_size: Texel size of the velocity grid
            strength: Confinement strength (config.curl)
            dt: Timestep in seconds
        """
        self.bind()
        self.uniform_f("texelSize", *texel_size)
        self.uniform_i("uVelocity", velocity.attach(0))
        self.uniform_i("uCurl", curl.attach(1))
        self.uniform_f("curl", strength)
        self.uniform_f("dt", dt)
        self.draw()

    @staticmethod
    def reference(frag: Fragment) -> np.ndarray:
        vL, vR, vT, vB = frag.neighbours()
        L = frag.texture("uCurl", *vL)[..., 0]
        R = frag.texture("uCurl", *vR)[..., 0]
        T = frag.texture("uCurl", *vT)[..., 0]
        B = frag.texture("uCurl", *vB)[..., 0]
        C = frag.texture("uCurl", frag.u, frag.v)[..., 0]

        force_x: np.ndarray = 0.5 * (np.abs(T) - np.abs(B))
        force_y: np.ndarray = 0.5 * (np.abs(R) - np.abs(L))
        length: np.ndarray = np.sqrt(force_x * force_x + force_y * force_y) + 0.0001
        scale: np.ndarray = frag.uniform("curl") * C / length
        force_x = force_x * scale
        force_y = -force_y * scale

        dt: float = frag.uniform("dt")
        velocity = frag.texture("uVelocity", frag.u, frag.v)
        vx = np.clip(velocity[..., 0] + force_x * dt, -VELOCITY_LIMIT, VELOCITY_LIMIT)
        vy = np.clip(velocity[..., 1] + force_y * dt, -VELOCITY_LIMIT, VELOCITY_LIMIT)
        return frag.vec4(vx, vy)
