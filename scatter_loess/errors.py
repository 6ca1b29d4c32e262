"""
Exceptions raised by the local regression smoother.
"""


class LoessError(ValueError):
    """
    Base class for failures of a local fit.

    Parameters
    ----------
    message : str
        Description of the failure.
    x0 : float, optional
        The query point whose fit failed, if the failure is local to a point.
    """

    def __init__(self, message, x0=None):
        super().__init__(message)
        self.x0 = x0


class InsufficientData(LoessError):
    """
    The neighbourhood holds fewer observations than the local polynomial needs.
    """


class DegenerateFit(LoessError):
    """
    The weighted design does not determine the fitted value at the query point.
    """
