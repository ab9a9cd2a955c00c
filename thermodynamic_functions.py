import numpy as np
from collections import namedtuple
from scipy.integrate import cumulative_trapezoid

#### Thermodynamic constants ###
GRAV = 9.81       # gravitational acceleration (m/s^2)
RD = 287.04       # gas constant for dry air (J/kg/K)
RV = 461.5        # gas constant for water vapor (J/kg/K)
EPS = RD/RV
CPD = 1005.7      # heat capacity of dry air at constant pressure (J/kg/K)
CPV = 1870.0
CPL = 4190.0
XLV = 2.501e6     # latent heat of vaporization at the triple point (J/kg)
TTRIP = 273.15
EREF = 611.2      # saturation vapor pressure at the triple point (Pa)


LapseRates = namedtuple('LapseRates', ['lapse_rate', 'moist_lapse_rate', 'RH', 'gamma'])


def calc_pres_from_height(height, T, ps, vertical_axis = -1):

    """
    Calculate pressure (same units as ps) from height in m
    assuming hydrostatic balance and neglecting
    virtual temperature effects.

    height is 1-D; T has the height dimension along vertical_axis
    and ps has the shape of T without that axis.

    Builds full-profile pressure input for calculate_zbp from an
    environmental temperature profile, e.g. with T shaped
    size(Tl) + (Nz,) and ps = pl.
    """

    T = np.asarray(T, dtype = float)
    exponent = -GRAV * cumulative_trapezoid(y = 1/(RD * T), x = height, initial = 0, axis = vertical_axis)
    ps = np.expand_dims(np.asarray(ps, dtype = float), vertical_axis)
    return ps * np.exp(exponent)


def latent_heat_calc(temp):

    # Kirchhoff's law with constant heat capacities, consistent with es_calc
    return XLV + (temp - TTRIP) * (CPV - CPL)


def es_calc(temp):

    """
    Saturation vapor pressure (Pa) over liquid water from the
    integrated Clausius-Clapeyron equation with a linearly
    varying latent heat.
    """

    term1 = ( CPV - CPL )/RV
    term2 = ( XLV - TTRIP * (CPV - CPL) )/RV
    esl = np.exp( (temp - TTRIP) * term2 / (temp * TTRIP) ) * EREF * pow( temp / TTRIP, term1)

    return esl


def qs_calc(press, temp):

    """
    Saturation specific humidity (kg/kg) from pressure in Pa
    and temperature in K.
    """

    es = es_calc(temp)
    qs = (EPS * es) / (press + ((EPS-1.)*es))

    return qs


def _lapse_rate_terms(T, p):

    # pieces shared by both lapse rate formulations
    Lv = latent_heat_calc(T)
    es = es_calc(T)
    qs = (EPS * es) / (p + ((EPS-1.)*es))
    w = p / (p + ((EPS-1.)*es))
    # dln(qs) = Kq dT + Gq dz along a hydrostatic ascent
    Kq = w * Lv / (RV * T**2)
    Gq = w * GRAV / (RD * T)
    A = CPD + Lv * qs * Kq
    B = GRAV + Lv * qs * Gq
    return Lv, qs, Kq, Gq, A, B


def zbp_lapse_rate(T, p, epsilon, PE):

    """
    Lapse rate of the zero-buoyancy plume for an entrainment
    rate epsilon (m^-1) and precipitation efficiency PE (0-1).

    The plume is saturated at the environmental temperature and
    its saturated MSE is diluted by entrainment of environmental air:

        dh*/dz = -epsilon Lv qs (1 - RH)

    The environmental relative humidity follows from a balance of
    detrainment, delta = epsilon (1 - PE)/PE, and subsidence drying:

        RH = delta / (delta + gamma),  gamma = -dln(qs)/dz

    Since gamma depends on the lapse rate, RH solves a quadratic;
    the root in [0, 1] is taken.

    Inputs T (K), p (Pa), epsilon and PE broadcast elementwise.

    Returns
    -------
    LapseRates(lapse_rate, moist_lapse_rate, RH, gamma), with the
    lapse rates in K/m and gamma in m^-1
    """

    T, p, epsilon, PE = np.broadcast_arrays(*(np.asarray(var, dtype = float) for var in (T, p, epsilon, PE)))

    Lv, qs, Kq, Gq, A, B = _lapse_rate_terms(T, p)

    # moist adiabat
    Gamma_m = B / A

    # gamma = gamma0 - s * RH
    E = epsilon * Lv * qs
    gamma0 = Kq * (B + E) / A - Gq
    s = Kq * E / A

    d = epsilon * (1. - PE)
    b = d + PE * gamma0
    disc = np.maximum(b**2 - 4. * PE * s * d, 0.)
    den = b + np.sqrt(disc)

    with np.errstate(divide = 'ignore', invalid = 'ignore'):
        RH = np.where(den > 0, 2. * d / np.where(den > 0, den, 1.), 1.)

    Gamma = (B + E * (1. - RH)) / A
    gamma = Kq * Gamma - Gq

    return LapseRates(Gamma, Gamma_m, RH, gamma)


def zbp_lapse_rate_a(T, p, a, PE):

    """
    As zbp_lapse_rate, but with the entrainment rate tied to the
    saturation humidity scale height, epsilon = a * gamma / PE, with
    a non-dimensional. RH is then independent of temperature:

        RH = a (1 - PE) / (a (1 - PE) + PE^2)

    For a = epsilon * PE / gamma the result equals zbp_lapse_rate
    with entrainment rate epsilon.
    """

    T, p, a, PE = np.broadcast_arrays(*(np.asarray(var, dtype = float) for var in (T, p, a, PE)))

    Lv, qs, Kq, Gq, A, B = _lapse_rate_terms(T, p)
    Gamma_m = B / A

    d = a * (1. - PE)
    den = d + PE**2
    with np.errstate(divide = 'ignore', invalid = 'ignore'):
        RH = np.where(den > 0, d / np.where(den > 0, den, 1.), 1.)
        # epsilon (1 - RH) / gamma
        f = np.where(den > 0, a * PE / np.where(den > 0, den, 1.), 0.)

    # A Gamma = B + f gamma Lv qs, gamma = Kq Gamma - Gq
    C = f * Lv * qs
    Gamma = (B - C * Gq) / (A - C * Kq)
    gamma = Kq * Gamma - Gq

    return LapseRates(Gamma, Gamma_m, RH, gamma)
