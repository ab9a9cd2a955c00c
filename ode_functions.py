'''
Fixed-step explicit integrators. The derivative function is
f(x, y) -> dy/dx with x the height and y the state of a batch
of columns.
'''

import numpy as np


def rk4_step(f, y, x, h):

    """
    Advance y from x to x + h with one classic fourth-order
    Runge-Kutta step.
    """

    y = np.asarray(y, dtype = float)

    k1 = f(x, y)
    k2 = f(x + 0.5 * h, y + 0.5 * h * k1)
    k3 = f(x + 0.5 * h, y + 0.5 * h * k2)
    k4 = f(x + h, y + h * k3)

    return y + (h / 6.) * (k1 + 2. * k2 + 2. * k3 + k4)


def euler_step(f, y, x, h):

    # forward Euler, for checking the RK4 results
    y = np.asarray(y, dtype = float)
    return y + h * f(x, y)


STEPPERS = {'rk4': rk4_step, 'euler': euler_step}
