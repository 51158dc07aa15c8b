"""
Noise mechanisms for differential privacy.

All randomness comes from the operating system CSPRNG through ``secrets``; a
seedable or predictable generator would let an attacker reconstruct the noise.
"""

import math
import secrets

import numpy as np

from clinical_anonymize.constants import GAUSSIAN_UNIFORM_FLOOR
from clinical_anonymize.differential_privacy.settings import (
    DifferentialPrivacySetting,
    DPMechanism,
)

_UNIFORM_BITS = 53
_UNIFORM_SCALE = 2.0**_UNIFORM_BITS


def secure_uniform() -> float:
    """Uniform double in [0, 1) with 53 random bits."""
    return secrets.randbits(_UNIFORM_BITS) / _UNIFORM_SCALE


def laplace_scale(sensitivity: float, epsilon: float) -> float:
    return sensitivity / epsilon


def gaussian_stddev(sensitivity: float, epsilon: float, delta: float) -> float:
    return sensitivity * math.sqrt(2.0 * math.log(1.25 / delta)) / epsilon


def sample_laplace(scale: float) -> float:
    """
    Draw one sample from Laplace(0, scale) by inverse transform sampling.

    Parameters
    ----------
    scale : float
        Laplace scale ``b``; the standard deviation is ``b * sqrt(2)``.

    Returns
    -------
    float
        The noise sample.
    """
    u = secure_uniform() - 0.5
    # ln(1 - 2|u|) is undefined at u == -0.5
    while u == -0.5:
        u = secure_uniform() - 0.5
    return -scale * math.copysign(1.0, u) * math.log(1.0 - 2.0 * abs(u))


def sample_gaussian(stddev: float) -> float:
    """
    Draw one sample from N(0, stddev^2) using the Box-Muller transform.

    Parameters
    ----------
    stddev : float
        Standard deviation of the noise.

    Returns
    -------
    float
        The noise sample.
    """
    u1 = max(secure_uniform(), GAUSSIAN_UNIFORM_FLOOR)
    u2 = secure_uniform()
    return stddev * math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def generate_noise(setting: DifferentialPrivacySetting) -> float:
    """
    Draw one noise sample calibrated to ``setting``.

    The exponential mechanism has no numeric form of its own, so numeric values
    are perturbed with the Laplace formula.
    """
    if setting.mechanism is DPMechanism.GAUSSIAN:
        return sample_gaussian(gaussian_stddev(setting.sensitivity, setting.epsilon, setting.delta))
    return sample_laplace(laplace_scale(setting.sensitivity, setting.epsilon))


def sample_noise(setting: DifferentialPrivacySetting, size: int) -> np.ndarray:
    """
    Draw ``size`` independent noise samples calibrated to ``setting``.

    Parameters
    ----------
    setting : DifferentialPrivacySetting
        Validated mechanism parameters.
    size : int
        Number of samples.

    Returns
    -------
    np.ndarray
        Float array of shape ``(size,)``.
    """
    if size < 0:
        raise ValueError(f"size must be >= 0, got {size}")
    return np.fromiter((generate_noise(setting) for _ in range(size)), dtype=np.float64, count=size)
