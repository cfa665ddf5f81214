#!/usr/bin/env python3
"""
Physical and dynamical constants used by the time-stepping core.

Based on SPEEDY physical_constants.f90 and dynamical_constants.f90.

Diffusion time scales and filter coefficients are tunable and live in
Config (state.py) instead.
"""

from typing import NamedTuple


class Constants(NamedTuple):
    """
    Physical and dynamical constants.
    """

    rearth: float = 6.371e6    # Earth radius (m)
    grav: float = 9.81         # Gravitational acceleration (m/s^2)

    cp: float = 1004.0         # Specific heat at constant pressure (J/kg/K)
    akap: float = 2.0/7.0      # R/Cp
    rgas: float = 2.0/7.0 * 1004.0  # Gas constant for dry air (J/kg/K)

    # Reference atmosphere
    gamma: float = 6.0         # Reference lapse rate (K/km)
    hscale: float = 7.5        # Scale height for pressure (km)
    hshum: float = 2.5         # Scale height for specific humidity (km)

    @property
    def rgam(self) -> float:
        """Polytropic exponent R*gamma/(1000*g) of the reference atmosphere."""
        return self.rgas * self.gamma / (1000.0 * self.grav)

    @property
    def qexp(self) -> float:
        """Exponent of the reference humidity profile."""
        return self.hscale / self.hshum


DEFAULT_CONSTANTS = Constants()
