"""Numba JIT compiled routines used to re-bin cells into a tower grid.

The tower grid is a uniform rectangular grid in two angular coordinates
(eta and phi) which spans `[-extent, extent]` along each axis. Cells which
straddle several towers share their value between them in proportion of
the fraction of their width which falls within each tower. The two axes
are treated independently, the area fraction of a cell in a tower is the
product of the fractions along each axis.
"""

import numba as nb
import numpy as np

__all__ = [
    "tower_index",
    "tower_center",
    "wrap_index",
    "tower_bounds",
    "tower_fractions",
    "fill_towers",
]


@nb.njit(cache=True)
def tower_index(x: nb.float64, extent: nb.float64, size: nb.float64) -> nb.int64:
    """Index of the tower which contains a coordinate value.

    Parameters
    ----------
    x : float
        Coordinate value
    extent : float
        Half-extent of the tower grid along this coordinate
    size : float
        Size of a tower along this coordinate

    Returns
    -------
    int
        Tower index (may fall outside of the grid)
    """
    return np.int64(np.floor((x + extent) / size))


@nb.njit(cache=True)
def tower_center(index: nb.int64, extent: nb.float64, size: nb.float64) -> nb.float64:
    """Coordinate of the center of a tower.

    Parameters
    ----------
    index : int
        Tower index
    extent : float
        Half-extent of the tower grid along this coordinate
    size : float
        Size of a tower along this coordinate

    Returns
    -------
    float
        Coordinate of the middle of the tower
    """
    return (index + 0.5) * size - extent


@nb.njit(cache=True)
def wrap_index(index: nb.int64, num_bins: nb.int64) -> nb.int64:
    """Brings a tower index back within `[0, num_bins)` for a cyclic axis.

    The first and the last tower of a cyclic axis are direct neighbours.

    Parameters
    ----------
    index : int
        Requested tower index, may be < 0 or >= num_bins
    num_bins : int
        Number of towers along the cyclic axis

    Returns
    -------
    int
        Tower index shifted into the `[0, num_bins)` range (unchanged if the
        axis has no towers)
    """
    if num_bins <= 0:
        return index
    if index < 0 or index >= num_bins:
        return index % num_bins

    return index


@nb.njit(cache=True)
def tower_bounds(
    centers: nb.float64[:],
    half_widths: nb.float64[:],
    extent: nb.float64,
    size: nb.float64,
    eps: nb.float64,
) -> (nb.int64[:], nb.int64[:]):
    """Indexes of the first and last towers touched by each cell.

    Each cell edge is nudged inward by `eps` before the lookup so that an
    edge sitting exactly on a tower boundary does not produce a zero-width
    contribution to the next tower.

    Parameters
    ----------
    centers : np.ndarray
        (N) Cell centers along one coordinate
    half_widths : np.ndarray
        (N) Cell half-widths along the same coordinate
    extent : float
        Half-extent of the tower grid along this coordinate
    size : float
        Size of a tower along this coordinate
    eps : float
        Inward nudge applied to the cell edges

    Returns
    -------
    np.ndarray
        (N) Index of the tower which contains the lower edge of each cell
    np.ndarray
        (N) Index of the tower which contains the upper edge of each cell
    """
    num_cells = len(centers)
    i_min = np.empty(num_cells, dtype=np.int64)
    i_max = np.empty(num_cells, dtype=np.int64)
    for i in range(num_cells):
        i_min[i] = tower_index(centers[i] - half_widths[i] + eps, extent, size)
        i_max[i] = tower_index(centers[i] + half_widths[i] - eps, extent, size)

    return i_min, i_max


@nb.njit(cache=True)
def tower_fractions(
    cell_min: nb.float64,
    cell_max: nb.float64,
    i_min: nb.int64,
    i_max: nb.int64,
    extent: nb.float64,
    size: nb.float64,
) -> nb.float64[:]:
    """Fraction of a cell width which falls within each tower it touches.

    The first and last towers receive the width of the cell which actually
    overlaps them, the remainder is shared evenly among the towers strictly
    in between (if any).

    Parameters
    ----------
    cell_min : float
        Lower edge of the cell
    cell_max : float
        Upper edge of the cell
    i_min : int
        Index of the first tower touched by the cell
    i_max : int
        Index of the last tower touched by the cell
    extent : float
        Half-extent of the tower grid along this coordinate
    size : float
        Size of a tower along this coordinate

    Returns
    -------
    np.ndarray
        (i_max - i_min + 1) Fraction of the cell in each tower
    """
    num_towers = i_max - i_min + 1
    fracs = np.ones(num_towers, dtype=np.float64)
    if num_towers < 2:
        return fracs

    width = cell_max - cell_min
    frac_min = abs(tower_center(i_min, extent, size) + 0.5 * size - cell_min) / width
    frac_max = abs(cell_max - tower_center(i_max, extent, size) + 0.5 * size) / width
    frac_mid = 0.0
    if num_towers > 2:
        frac_mid = (1.0 - frac_min - frac_max) / (num_towers - 2)

    fracs[0] = frac_min
    fracs[1:-1] = frac_mid
    fracs[-1] = frac_max

    return fracs


@nb.njit(cache=True)
def fill_towers(
    towers: nb.float64[:, :],
    eta: nb.float64[:],
    phi: nb.float64[:],
    eta_half: nb.float64[:],
    phi_half: nb.float64[:],
    energy: nb.float64[:],
    eta_extent: nb.float64,
    phi_extent: nb.float64,
    eta_size: nb.float64,
    phi_size: nb.float64,
    eps: nb.float64,
) -> nb.int64:
    """Adds the transverse energy of a set of cells to a tower grid.

    The transverse energy of a cell, `energy / cosh(eta)`, is evaluated at
    the cell center and shared between towers according to the product of
    the eta and phi width fractions. The phi axis is cyclic, the eta axis
    is not: contributions which land outside of the eta range are dropped.

    Parameters
    ----------
    towers : np.ndarray
        (N_eta, N_phi) Tower grid, updated in place
    eta : np.ndarray
        (N) Cell centers in eta
    phi : np.ndarray
        (N) Cell centers in phi
    eta_half : np.ndarray
        (N) Cell half-widths in eta
    phi_half : np.ndarray
        (N) Cell half-widths in phi
    energy : np.ndarray
        (N) Cell energies
    eta_extent : float
        Half-extent of the tower grid in eta
    phi_extent : float
        Half-extent of the tower grid in phi
    eta_size : float
        Tower size in eta
    phi_size : float
        Tower size in phi
    eps : float
        Inward nudge applied to the cell edges

    Returns
    -------
    int
        Number of (cell, tower) contributions dropped outside the eta range
    """
    num_eta, num_phi = towers.shape
    eta_min, eta_max = tower_bounds(eta, eta_half, eta_extent, eta_size, eps)
    phi_min, phi_max = tower_bounds(phi, phi_half, phi_extent, phi_size, eps)

    dropped = 0
    for i in range(len(eta)):
        eta_fracs = tower_fractions(
            eta[i] - eta_half[i],
            eta[i] + eta_half[i],
            eta_min[i],
            eta_max[i],
            eta_extent,
            eta_size,
        )
        phi_fracs = tower_fractions(
            phi[i] - phi_half[i],
            phi[i] + phi_half[i],
            phi_min[i],
            phi_max[i],
            phi_extent,
            phi_size,
        )
        et = energy[i] / np.cosh(eta[i])
        for j in range(len(eta_fracs)):
            i_eta = eta_min[i] + j
            if i_eta < 0 or i_eta >= num_eta:
                dropped += len(phi_fracs)
                continue
            for k in range(len(phi_fracs)):
                i_phi = wrap_index(phi_min[i] + k, num_phi)
                towers[i_eta, i_phi] += et * eta_fracs[j] * phi_fracs[k]

    return dropped
