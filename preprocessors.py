import numpy as np
from enum import Enum
from zbp_errors import ConfigurationError, ShapeError

DZ_DEFAULT = 50.  # grid spacing (m) when only the bounds are given


class PressureMode(Enum):

    """
    How the pressure argument relates to the temperature batch:
    given at the lower level only, or at every level with height
    as the last (FULL_PROFILE) or first axis.
    """

    BASE_ONLY = 'base_only'
    FULL_PROFILE = 'full_profile'
    FULL_PROFILE_HEIGHT_FIRST = 'full_profile_height_first'

    @property
    def calc_pressure(self):
        return self is PressureMode.BASE_ONLY


def build_height_grid(z, dz = DZ_DEFAULT):

    """
    Height levels (m) for the integration.

    z is either the lower and upper bound, in which case levels are
    spaced by dz with a shorter final step onto the upper bound, or
    an explicit, strictly increasing list of at least three levels.
    """

    z = np.atleast_1d(np.asarray(z, dtype = float))
    if z.ndim != 1 or not np.isfinite(z).all():
        raise ConfigurationError('height input must be a 2-element bound or an explicit level list')

    if z.size == 2:

        zl, zm = z
        if not zm > zl:
            raise ConfigurationError(f'upper bound {zm} must be above lower bound {zl}')
        if not dz > 0:
            raise ConfigurationError(f'grid spacing must be positive, got {dz}')

        levels = np.arange(zl, zm, dz)
        # arange can overshoot the bound by round-off
        levels = levels[levels < zm]
        return np.append(levels, zm)

    if z.size >= 3 and (np.diff(z) > 0).all():
        return z

    raise ConfigurationError('height input must be a 2-element bound or an explicit level list')


def _infer_mode(pshape, Tshape, Nz):

    if pshape == Tshape:
        return PressureMode.BASE_ONLY
    elif pshape == Tshape + (Nz,):
        return PressureMode.FULL_PROFILE
    elif pshape == (Nz,) + Tshape:
        return PressureMode.FULL_PROFILE_HEIGHT_FIRST

    raise ShapeError(f'size(p) = {pshape} does not match size(T) = {Tshape} '
                     f'or size(T) with {Nz} levels {Tshape + (Nz,)}')


def resolve_pressure(pl, Tshape, Nz, pressure_mode = None):

    """
    Work out what the pressure input holds.

    With pressure_mode None the mode is read off the shape of pl;
    otherwise the shape is checked against the given mode.

    Returns the PressureMode and, for the full-profile modes,
    pressure with shape Tshape + (Nz,); None when pressure
    is derived from the lower level.
    """

    pl = np.asarray(pl, dtype = float)
    pshape, Tshape = tuple(pl.shape), tuple(Tshape)

    if pressure_mode is None:
        mode = _infer_mode(pshape, Tshape, Nz)
    else:
        try:
            mode = PressureMode(pressure_mode)
        except ValueError:
            raise ConfigurationError(f'unknown pressure mode {pressure_mode!r}, must be one of '
                                     f'{[m.value for m in PressureMode]}') from None

        expected = {PressureMode.BASE_ONLY: Tshape,
                    PressureMode.FULL_PROFILE: Tshape + (Nz,),
                    PressureMode.FULL_PROFILE_HEIGHT_FIRST: (Nz,) + Tshape}[mode]
        if pshape != expected:
            raise ShapeError(f'size(p) = {pshape} but {mode.value} pressure needs {expected} '
                             f'for size(T) = {Tshape}')

    if mode is PressureMode.BASE_ONLY:
        return mode, None
    elif mode is PressureMode.FULL_PROFILE_HEIGHT_FIRST:
        # p is around the wrong way, but we can fix it
        return mode, np.moveaxis(pl, 0, -1)

    return mode, pl


def flatten_inputs(Tl, epsilon, PE):

    """
    Flatten the batch inputs to 1-D columns in a common (C) order.
    Entrainment and PE may be scalars or broadcast to the shape of Tl.
    """

    Tl = np.asarray(Tl, dtype = float)
    Tshape = Tl.shape

    flat = [Tl.ravel()]
    for name, var in (('epsilon', epsilon), ('PE', PE)):
        var = np.asarray(var, dtype = float)
        try:
            var = np.broadcast_to(var, Tshape)
        except ValueError:
            raise ShapeError(f'size({name}) = {var.shape} cannot be broadcast to size(T) = {Tshape}') from None
        flat.append(var.ravel())

    return Tshape, flat[0], flat[1], flat[2]
