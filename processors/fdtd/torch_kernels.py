"""
Tensor wave-equation kernels for accelerator devices.

Same arithmetic as the CPU kernels, written as whole-array slice
operations so each step is a handful of device launches. Boundary cells are
written as zero.
"""

import torch


def pwave_1d_step(u, v, velocity, damping, out, dt, dx, damping_coeff):
    n = u.shape[0]
    inner = slice(2, n - 2)
    lap = (u[3:n - 1] - 2.0 * u[inner] + u[1:n - 3]) / (dx * dx)
    c = velocity[inner]
    a = c * c * lap - damping_coeff * v[inner]
    v[inner] += a * dt
    out.zero_()
    out[inner] = (u[inner] + v[inner] * dt) * (1.0 - damping[inner])


def swave_1d_step(u, v, velocity, out, dt, dx, damping_coeff):
    n = u.shape[0]
    inner = slice(2, n - 2)
    lap = (u[3:n - 1] - 2.0 * u[inner] + u[1:n - 3]) / (dx * dx)
    c = velocity[inner]
    a = c * c * lap - damping_coeff * v[inner]
    v[inner] += a * dt
    out.zero_()
    out[inner] = u[inner] + v[inner] * dt


def isotropic_3d_step(prev, cur, nxt, velocity, dt, dx, attenuation,
                      neighbor_coeff, center_coeff, boundary):
    b = boundary
    nx, ny, nz = cur.shape
    xs, ys, zs = slice(b, nx - b), slice(b, ny - b), slice(b, nz - b)

    c0 = cur[xs, ys, zs]
    s = (cur[b + 1:nx - b + 1, ys, zs] + cur[b - 1:nx - b - 1, ys, zs] +
         cur[xs, b + 1:ny - b + 1, zs] + cur[xs, b - 1:ny - b - 1, zs] +
         cur[xs, ys, b + 1:nz - b + 1] + cur[xs, ys, b - 1:nz - b - 1])
    lap = (neighbor_coeff * s - center_coeff * c0) / (dx * dx)
    p = prev[xs, ys, zs]
    vel = velocity[xs, ys, zs]
    accel = vel * vel * lap - attenuation * (c0 - p) / dt

    nxt.zero_()
    nxt[xs, ys, zs] = 2.0 * c0 - p + dt * dt * accel


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
                      int(params['boundary']))


KERNELS = {
    'pwave_1d': _dispatch_pwave_1d,
    'swave_1d': _dispatch_swave_1d,
    'isotropic_3d': _dispatch_isotropic_3d,
}


@torch.no_grad()
def dispatch(kernel_id: str, buffers, params) -> None:
    KERNELS[kernel_id](buffers, params)
