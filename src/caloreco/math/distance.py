"""Numba JIT compiled angular coordinates and distances.

Positions are expressed as Cartesian vectors in the detector frame, with
the z axis along the beam. The angular coordinates of a vector are its
pseudorapidity (eta) and its azimuthal angle (phi).
"""

import numba as nb
import numpy as np

__all__ = ["pseudorapidity", "azimuth", "delta_phi", "delta_r", "to_cartesian"]

# Pseudorapidity assigned to vectors parallel to the beam axis
ETA_LIMIT = 1e10


@nb.njit(cache=True)
def pseudorapidity(v: nb.float64[:]) -> nb.float64:
    """Pseudorapidity of a 3-vector, `eta = asinh(z / rho)`.

    Parameters
    ----------
    v : np.ndarray
        (3) Cartesian vector

    Returns
    -------
    float
        Pseudorapidity of the vector
    """
    rho = np.sqrt(v[0] ** 2 + v[1] ** 2)
    if rho == 0.0:
        if v[2] == 0.0:
            return 0.0
        return ETA_LIMIT if v[2] > 0.0 else -ETA_LIMIT

    return np.arcsinh(v[2] / rho)


@nb.njit(cache=True)
def azimuth(v: nb.float64[:]) -> nb.float64:
    """Azimuthal angle of a 3-vector in `[-pi, pi]`.

    Parameters
    ----------
    v : np.ndarray
        (3) Cartesian vector

    Returns
    -------
    float
        Azimuthal angle of the vector
    """
    if v[0] == 0.0 and v[1] == 0.0:
        return 0.0

    return np.arctan2(v[1], v[0])


@nb.njit(cache=True)
def delta_phi(phi_a: nb.float64, phi_b: nb.float64) -> nb.float64:
    """Difference between two azimuthal angles, folded into `[-pi, pi)`.

    Parameters
    ----------
    phi_a : float
        First angle
    phi_b : float
        Second angle

    Returns
    -------
    float
        Signed angular difference `phi_a - phi_b`
    """
    dphi = phi_a - phi_b
    while dphi >= np.pi:
        dphi -= 2.0 * np.pi
    while dphi < -np.pi:
        dphi += 2.0 * np.pi

    return dphi


@nb.njit(cache=True)
def delta_r(v_a: nb.float64[:], v_b: nb.float64[:]) -> nb.float64:
    """Angular distance between the directions of two 3-vectors.

    Only the direction of each vector matters, so an energy-weighted
    position sum can be compared directly to a cell position.

    Parameters
    ----------
    v_a : np.ndarray
        (3) First Cartesian vector
    v_b : np.ndarray
        (3) Second Cartesian vector

    Returns
    -------
    float
        `sqrt(d_eta**2 + d_phi**2)`
    """
    deta = pseudorapidity(v_a) - pseudorapidity(v_b)
    dphi = delta_phi(azimuth(v_a), azimuth(v_b))

    return np.sqrt(deta**2 + dphi**2)


@nb.njit(cache=True)
def to_cartesian(radius: nb.float64, eta: nb.float64, phi: nb.float64) -> nb.float64[:]:
    """Cartesian position of a point at a transverse radius, eta and phi.

    Parameters
    ----------
    radius : float
        Transverse distance from the beam axis
    eta : float
        Pseudorapidity
    phi : float
        Azimuthal angle

    Returns
    -------
    np.ndarray
        (3) Cartesian coordinates
    """
    pos = np.empty(3, dtype=np.float64)
    pos[0] = radius * np.cos(phi)
    pos[1] = radius * np.sin(phi)
    pos[2] = radius * np.sinh(eta)

    return pos
