#!/usr/bin/env python3
"""
Vertical sigma grid and reference temperature profile.

Based on SPEEDY geometry.f90 and implicit.f90. Only the quantities needed by
the semi-implicit operator and the diffusion corrections are kept here.
"""

import numpy as np
from typing import Optional

from .constants import DEFAULT_CONSTANTS, Constants

# Half-level tables used by SPEEDY for its standard vertical resolutions
_HALF_LEVELS = {
    8: [0.000, 0.050, 0.140, 0.260, 0.420, 0.600, 0.770, 0.900, 1.000],
    7: [0.020, 0.140, 0.260, 0.420, 0.600, 0.770, 0.900, 1.000],
    5: [0.000, 0.150, 0.350, 0.650, 0.900, 1.000],
}


class VerticalGrid:
    """
    Sigma coordinate levels (sigma = p/p_s) and the reference atmosphere.

    Attributes:
        hsg: Half levels (interfaces) [kx+1], 0 at the top, 1 at the surface
        fsg: Full levels [kx]
        dhs: Layer thickness [kx]
        tref: Reference temperature [kx]
        tref1: R * tref [kx]
    """

    def __init__(self, kx: int, constants: Optional[Constants] = None):
        if kx < 1:
            raise ValueError(f"kx={kx} must be at least 1")
        self.kx = kx

        if constants is None:
            constants = DEFAULT_CONSTANTS
        self.constants = constants

        if kx in _HALF_LEVELS:
            self.hsg = np.array(_HALF_LEVELS[kx])
        else:
            # Generic distribution for other kx
            self.hsg = np.linspace(0.0, 1.0, kx + 1)

        self.fsg = 0.5 * (self.hsg[1:] + self.hsg[:-1])
        self.dhs = np.diff(self.hsg)

        self.tref, self.tref1 = self._setup_reference_temperature()

    def _setup_reference_temperature(self):
        """
        T_ref(sigma) = 288 K * max(0.2, sigma)^(R*gamma/(1000*g))
        """
        tref = 288.0 * np.maximum(0.2, self.fsg) ** self.constants.rgam
        return tref, self.constants.rgas * tref
