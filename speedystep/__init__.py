"""
Leapfrog time stepping for SPEEDY-type spectral models in JAX.

Robert-Williams filtered leapfrog integration of the prognostic spectral
fields, with horizontal diffusion and the semi-implicit treatment of gravity
waves applied to the tendencies.
"""

from .constants import Constants, DEFAULT_CONSTANTS
from .diffusion import DampingCoefficients, HorizontalDiffusion
from .errors import (
    LeapfrogIndexError, SemiImplicitStateError, ShapeMismatchError, TimeSteppingError,
)
from .implicit import ImplicitCoefficients, SemiImplicitOperator
from .integration import (
    TimeStepper, step_field, step_layers, step_tracers, step_variable,
)
from .logging_config import setup_logging
from .spectral import SpectralTruncation
from .state import (
    Config, FilterCoefficients, PrognosticState, SpectralState, Tendencies,
)
from .tendencies import RelaxationTendencies, TendencyEvaluator
from .vertical import VerticalGrid

__all__ = [
    # Time stepping
    'TimeStepper',
    'step_field',
    'step_layers',
    'step_tracers',
    'step_variable',
    # States
    'Config',
    'FilterCoefficients',
    'PrognosticState',
    'SpectralState',
    'Tendencies',
    # Collaborators
    'HorizontalDiffusion',
    'DampingCoefficients',
    'SemiImplicitOperator',
    'ImplicitCoefficients',
    'SpectralTruncation',
    'TendencyEvaluator',
    'RelaxationTendencies',
    'Constants',
    'DEFAULT_CONSTANTS',
    'VerticalGrid',
    # Errors
    'TimeSteppingError',
    'ShapeMismatchError',
    'LeapfrogIndexError',
    'SemiImplicitStateError',
    'setup_logging',
]
