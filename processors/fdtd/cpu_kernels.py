"""
CPU wave-equation kernels.

Each kernel advances one time step for every cell in a single parallel
loop. Cells only read the input buffers and write their own output cell,
so iterations are independent. Boundary cells are written as zero.
"""

import numpy as np
from numba import jit, prange


# =============================================================================
# Numba JIT-compiled core
# =============================================================================

@jit(nopython=True, parallel=True, cache=True)
def pwave_1d_step(u, v, velocity, damping, out, dt, dx, damping_coeff):
    """
    1D P-wave update with a damping ramp.

    a = c^2 * d2u/dx2 - damping_coeff * v; v += a*dt; out = (u + v*dt) * (1 - ramp).
    """
    n = u.shape[0]
    inv_dx2 = 1.0 / (dx * dx)
    for i in prange(n):
        if i < 2 or i >= n - 2:
            out[i] = 0.0
        else:
            lap = (u[i + 1] - 2.0 * u[i] + u[i - 1]) * inv_dx2
            c = velocity[i]
            a = c * c * lap - damping_coeff * v[i]
            v[i] += a * dt
            out[i] = (u[i] + v[i] * dt) * (1.0 - damping[i])


@jit(nopython=True, parallel=True, cache=True)
def swave_1d_step(u, v, velocity, out, dt, dx, damping_coeff):
    """1D S-wave update; same stencil as the P kernel without the ramp."""
    n = u.shape[0]
    inv_dx2 = 1.0 / (dx * dx)
    for i in prange(n):
        if i < 2 or i >= n - 2:
            out[i] = 0.0
        else:
            lap = (u[i + 1] - 2.0 * u[i] + u[i - 1]) * inv_dx2
            c = velocity[i]
            a = c * c * lap - damping_coeff * v[i]
            v[i] += a * dt
            out[i] = u[i] + v[i] * dt


@jit(nopython=True, parallel=True, cache=True)
def isotropic_3d_step(prev, cur, nxt, velocity, dt, dx, attenuation,
                      neighbor_coeff, center_coeff, boundary):
    """
    3D second-order update.

    lap = (neighbor_coeff * sum6 - center_coeff * c) / dx^2
    next = 2*c - prev + dt^2 * (v^2 * lap - attenuation * (c - prev) / dt)
    """
    nx, ny, nz = cur.shape
    inv_dx2 = 1.0 / (dx * dx)
    dt2 = dt * dt
    for x in prange(nx):
        for y in range(ny):
            for z in range(nz):
                if (x < boundary or x >= nx - boundary or
                        y < boundary or y >= ny - boundary or
                        z < boundary or z >= nz - boundary):
                    nxt[x, y, z] = 0.0
                    continue
                c0 = cur[x, y, z]
                s = (cur[x + 1, y, z] + cur[x - 1, y, z] +
                     cur[x, y + 1, z] + cur[x, y - 1, z] +
                     cur[x, y, z + 1] + cur[x, y, z - 1])
                lap = (neighbor_coeff * s - center_coeff * c0) * inv_dx2
                p = prev[x, y, z]
                vel = velocity[x, y, z]
                accel = vel * vel * lap - attenuation * (c0 - p) / dt
                nxt[x, y, z] = 2.0 * c0 - p + dt2 * accel


# =============================================================================
# Dispatch table
# =============================================================================

def _dispatch_pwave_1d(buffers, params):
    pwave_1d_step(buffers['u'], buffers['v'], buffers['velocity'], buffers['damping'],
                  buffers['out'], params['dt'], params['dx'], params['damping_coeff'])


def _dispatch_swave_1d(buffers, params):
    swave_1d_step(buffers['u'], buffers['v'], buffers['velocity'], buffers['out'],
                  params['dt'], params['dx'], params['damping_coeff'])


def _dispatch_isotropic_3d(buffers, params):
    isotropic_3d_step(buffers['prev'], buffers['cur'], buffers['next'], buffers['velocity'],
                      params['dt'], params['dx'], params['attenuation'],
                      params['neighbor_coeff'], params['center_coeff'],
                      np.int64(params['boundary']))


KERNELS = {
    'pwave_1d': _dispatch_pwave_1d,
    'swave_1d': _dispatch_swave_1d,
    'isotropic_3d': _dispatch_isotropic_3d,
}
