'''
PURPOSE: Calculate temperature and relative humidity profiles
         between two levels in the lower troposphere based on
         the zero-buoyancy plume (ZBP) model.
'''

import numpy as np
import xarray as xr
from collections import namedtuple
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ode_functions import STEPPERS, rk4_step
from preprocessors import DZ_DEFAULT, build_height_grid, flatten_inputs, resolve_pressure
from thermodynamic_functions import GRAV, RD, zbp_lapse_rate, zbp_lapse_rate_a
from zbp_errors import ConfigurationError, NumericalError, ShapeError

ZBPProfile = namedtuple('ZBPProfile', ['T', 'p', 'z', 'RH', 'Tm', 'gamma'])


class EntrainmentPolicy(Enum):

    """
    How the entrainment rate varies with height:

    const : entrainment rate as given
    invz  : entrainment rate scaled by 1000 m / z
    gamma : entrainment proportional to gamma = -dln(qs)/dz, through the
            parameter a = epsilon * PE / gamma_l with gamma_l taken from
            the lower level
    """

    CONST = 'const'
    INVZ = 'invz'
    GAMMA = 'gamma'

    @classmethod
    def parse(cls, name):
        try:
            return cls(name)
        except ValueError:
            raise ConfigurationError(f'unknown entrainment type {name!r}, must be one of '
                                     f'{[m.value for m in cls]}') from None


@dataclass(frozen = True, eq = False)
class StepContext:

    """
    Everything the plume tendencies need besides the state itself.
    epsilon and PE are per column; gamma_ref is only used by the
    gamma policy and is fixed for the whole integration.
    """

    policy: EntrainmentPolicy
    epsilon: np.ndarray
    PE: np.ndarray
    gamma_ref: Optional[np.ndarray] = None

    def effective_entrainment(self, z):

        if self.policy is EntrainmentPolicy.CONST:
            return self.epsilon
        elif self.policy is EntrainmentPolicy.INVZ:
            return self.epsilon * 1000. / z
        return self.epsilon * self.PE / self.gamma_ref

    @property
    def evaluator(self):
        if self.policy is EntrainmentPolicy.GAMMA:
            return zbp_lapse_rate_a
        return zbp_lapse_rate

    def lapse_rates(self, T, p, z):
        return self.evaluator(T, p, self.effective_entrainment(z), self.PE)

    def tendency(self, z, Tp):

        """
        d/dz of the stacked state Tp = [T, log(p)], shape (N, 2).
        """

        T, p = Tp[:, 0], np.exp(Tp[:, 1])
        lapse_rate = self.lapse_rates(T, p, z).lapse_rate
        return np.stack((-lapse_rate, -GRAV / (RD * T)), axis = 1)


def reference_context(ncol):

    # non-entraining moist adiabat with all condensate precipitated
    return StepContext(EntrainmentPolicy.CONST, np.zeros(ncol), np.ones(ncol))


def _check_finite(values, z, Tshape, what, positive = False):

    ok = np.isfinite(values)
    if positive:
        ok &= values > 0
    if ok.all():
        return

    icol = int(np.flatnonzero(~ok)[0])
    batch_index = tuple(int(i) for i in np.unravel_index(icol, Tshape)) if Tshape else ()
    raise NumericalError(f'{what} is {values[icol]} in column {icol} {batch_index} at z = {z} m',
                         column = icol, batch_index = batch_index, height = float(z))


def integrate_profiles(z, Tl, pl, epsilon, PE, policy = EntrainmentPolicy.CONST,
                       p_full = None, step = rk4_step, Tshape = None):

    """
    Integrate the plume temperature, and pressure if p_full is None,
    upward from z[0] for a batch of columns.

    Tl, epsilon and PE are 1-D over the N columns. pl is the pressure at
    z[0], 1-D over the columns. p_full, if given, holds pressure at every
    level, shape (N, Nz), and is used as is; pl may then be None.
    Tshape is only used to report failing columns.

    Returns T, Tm, p, RH and gamma, each of shape (N, Nz).
    """

    policy = EntrainmentPolicy.parse(policy)
    z = np.asarray(z, dtype = float)
    Nz, ncol = z.size, Tl.size
    Tshape = (ncol,) if Tshape is None else tuple(Tshape)

    if policy is EntrainmentPolicy.INVZ and (z <= 0).any():
        raise ConfigurationError('invz entrainment needs all heights above zero, '
                                 f'lowest level is {z[0]} m')

    calc_pressure = p_full is None
    if calc_pressure and pl is None:
        raise ConfigurationError('pressure is needed at the lower level or at every level')

    # Initialise temperature, moist adiabat, pressure and RH
    T = np.zeros((ncol, Nz))
    Tm = np.zeros((ncol, Nz))
    RH = np.zeros((ncol, Nz))
    gamma = np.zeros((ncol, Nz))

    if calc_pressure:
        p = np.zeros((ncol, Nz))
        p[:, 0] = pl
    else:
        p = np.array(p_full, dtype = float)

    T[:, 0] = Tl
    Tm[:, 0] = Tl

    with np.errstate(divide = 'ignore', invalid = 'ignore', over = 'ignore'):

        _check_finite(T[:, 0], z[0], Tshape, 'temperature', positive = True)
        _check_finite(p[:, 0], z[0], Tshape, 'pressure', positive = True)

        gamma_ref = None
        if policy is EntrainmentPolicy.GAMMA:
            # gamma at the lower level, kept fixed for the whole column
            gamma_ref = zbp_lapse_rate(Tl, p[:, 0], epsilon, PE).gamma

        plume = StepContext(policy, epsilon, PE, gamma_ref)
        adiabat = reference_context(ncol)

        for i in range(Nz):

            if not calc_pressure:
                _check_finite(p[:, i], z[i], Tshape, 'pressure', positive = True)

            rates = plume.lapse_rates(T[:, i], p[:, i], z[i])
            RH[:, i] = rates.RH
            gamma[:, i] = rates.gamma

            if i == Nz - 1:
                break

            dz = z[i+1] - z[i]
            logp = np.log(p[:, i])

            Tp_out = step(plume.tendency, np.stack((T[:, i], logp), axis = 1), z[i], dz)

            # the moist adiabat uses the plume pressure
            Tpm_out = step(adiabat.tendency, np.stack((Tm[:, i], logp), axis = 1), z[i], dz)

            _check_finite(Tp_out[:, 0], z[i+1], Tshape, 'temperature', positive = True)
            _check_finite(Tpm_out[:, 0], z[i+1], Tshape, 'moist adiabat temperature', positive = True)

            T[:, i+1] = Tp_out[:, 0]
            Tm[:, i+1] = Tpm_out[:, 0]
            if calc_pressure:
                p[:, i+1] = np.exp(Tp_out[:, 1])
                _check_finite(p[:, i+1], z[i+1], Tshape, 'pressure', positive = True)

    return T, Tm, p, RH, gamma


def reshape_output(arr, Tshape, vertical_axis = 0):

    """
    (N, Nz) -> Tshape with the height axis at vertical_axis.
    """

    arr = np.asarray(arr)
    Tshape = tuple(Tshape)
    ncol = int(np.prod(Tshape, dtype = int))

    if arr.ndim != 2 or arr.shape[0] != ncol:
        raise ShapeError(f'cannot reshape output of size {arr.shape} to size(T) = {Tshape} with levels')

    out = arr.reshape(Tshape + (arr.shape[1],))
    return np.moveaxis(out, -1, vertical_axis)


def _check_parameters(epsilon, PE, vertical_axis):

    if not np.isfinite(epsilon).all() or (epsilon < 0).any():
        raise ConfigurationError('entrainment rate must be finite and non-negative')
    if not ((PE >= 0) & (PE <= 1)).all():
        raise ConfigurationError('precipitation efficiency must lie in [0, 1]')
    if vertical_axis not in (0, -1):
        raise ConfigurationError(f'vertical_axis must be 0 or -1, got {vertical_axis}')


def _run_zbp(z, pl, Tl, epsilon, PE, policy, pressure_mode, vertical_axis, step):

    Tshape, Tl, epsilon, PE = flatten_inputs(Tl, epsilon, PE)
    _check_parameters(epsilon, PE, vertical_axis)

    mode, p_full = resolve_pressure(pl, Tshape, z.size, pressure_mode)
    if mode.calc_pressure:
        pl = np.asarray(pl, dtype = float).ravel()
    else:
        pl, p_full = None, p_full.reshape(-1, z.size)

    T, Tm, p, RH, gamma = integrate_profiles(z, Tl, pl, epsilon, PE, policy,
                                             p_full = p_full, step = step, Tshape = Tshape)

    # Make the arrays the shape we want
    T, Tm, p, RH, gamma = (reshape_output(var, Tshape, vertical_axis) for var in (T, Tm, p, RH, gamma))
    return ZBPProfile(T, p, z, RH, Tm, gamma)


def calculate_zbp(z, pl, Tl, epsilon, PE, entrainment_type = 'const',
                  pressure_mode = None, dz = DZ_DEFAULT, vertical_axis = 0):

    """
    Calculate the temperature and relative humidity profiles
    between two levels based on the zero-buoyancy plume model.

    Inputs
    ------
    z        : height (m) of the lower and upper levels, or a vector
               of at least three height levels (length Nz)
    pl       : pressure (Pa) at the lower level (size Tsize), or at
               each level (size [Tsize Nz] or [Nz Tsize])
    Tl       : temperature at the lower level (K), any size (Tsize)
    epsilon  : entrainment rate (m^-1), size Tsize or scalar
    PE       : precipitation efficiency (0-1), size Tsize or scalar
    entrainment_type : 'const', 'invz' or 'gamma'
    pressure_mode    : None to infer from the shape of pl, or a
                       preprocessors.PressureMode (or its value)
    dz       : grid spacing (m) when z gives the bounds only
    vertical_axis    : 0 for height-first outputs, -1 for height-last

    Outputs
    -------
    ZBPProfile(T, p, z, RH, Tm, gamma): temperature (K), pressure (Pa),
    height grid (m, 1-D), relative humidity (0-1), moist adiabat
    temperature (K) and gamma = -dln(qs)/dz (m^-1)
    """

    policy = EntrainmentPolicy.parse(entrainment_type)
    z = build_height_grid(z, dz)
    return _run_zbp(z, pl, Tl, epsilon, PE, policy, pressure_mode, vertical_axis, rk4_step)


class ZBPModel:

    """
    Zero-buoyancy plume model for a fixed height grid and set of options.
    Takes lower-level states and returns vertical profiles.
    """

    def __init__(self, z, entrainment_type = 'const',
                 pressure_mode = None,
                 dz = DZ_DEFAULT,
                 vertical_axis = 0,  # 0 puts height first, -1 last
                 method = 'rk4',
                 verbose = True) -> None:

        if method not in STEPPERS:
            raise ConfigurationError(f'method must be one of {list(STEPPERS)}')
        if vertical_axis not in (0, -1):
            raise ConfigurationError('vertical_axis must be either 0 or -1')

        self.policy = EntrainmentPolicy.parse(entrainment_type)
        self.z = build_height_grid(z, dz)
        self.pressure_mode = pressure_mode
        self.vertical_axis = vertical_axis
        self.method = method
        self.verbose = verbose

        self.profile = None

    def run(self, pl, Tl, epsilon, PE):

        if self.verbose:
            print(f'RUNNING {self.policy.value} ZBP COMPUTATION')

        self.profile = _run_zbp(self.z, pl, Tl, epsilon, PE, self.policy, self.pressure_mode,
                                self.vertical_axis, STEPPERS[self.method])
        return self.profile

    def to_dataset(self, profile = None, batch_dims = None):

        """
        Put the profiles in an xarray Dataset with a height coordinate.
        batch_dims names the dimensions of the temperature batch.
        """

        profile = self.profile if profile is None else profile
        if profile is None:
            raise RuntimeError('no profile to convert, call run() first')

        nbatch = profile.T.ndim - 1
        if batch_dims is None:
            batch_dims = [f'dim_{n}' for n in range(nbatch)]
        elif len(batch_dims) != nbatch:
            raise ShapeError(f'{len(batch_dims)} batch dimension names given for {nbatch} batch dimensions')

        dims = ('height', *batch_dims) if self.vertical_axis == 0 else (*batch_dims, 'height')

        data_vars = dict(T = (dims, profile.T, {'units': 'K'}),
                         Tm = (dims, profile.Tm, {'units': 'K'}),
                         p = (dims, profile.p, {'units': 'Pa'}),
                         RH = (dims, profile.RH, {'units': '1'}),
                         gamma = (dims, profile.gamma, {'units': 'm-1'}))
        coords = dict(height = ('height', profile.z, {'units': 'm'}))
        attrs = {'entrainment formulation': self.policy.value}

        return xr.Dataset(data_vars, coords, attrs)

    def main(self, pl, Tl, epsilon, PE, batch_dims = None):

        self.run(pl, Tl, epsilon, PE)
        return self.to_dataset(batch_dims = batch_dims)
