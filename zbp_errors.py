'''
Exceptions raised by the zero-buoyancy plume calculation.
'''


class ZBPError(Exception):
    pass


class ConfigurationError(ZBPError, ValueError):

    """
    Malformed height input, unknown entrainment type or pressure mode,
    or parameters outside their physical range.
    """


class ShapeError(ZBPError, ValueError):

    """
    Input arrays whose shapes cannot be reconciled with the
    temperature batch shape and the number of height levels.
    """


class NumericalError(ZBPError, ArithmeticError):

    """
    A non-finite temperature or pressure produced during the
    integration. Carries the first offending column (flat index and
    index into the original batch shape) and the height in m.
    """

    def __init__(self, message, column = None, batch_index = None, height = None):
        super().__init__(message)
        self.column = column
        self.batch_index = batch_index
        self.height = height
