"""
Scatterplot with an overlaid loess curve and its confidence band.

Every visual option is a field of `SmoothPlotOptions`; customising a plot
means changing one field at a time, e.g. with `SmoothPlotOptions.updated`.
"""
from contextlib import nullcontext
from dataclasses import dataclass, fields, replace
from typing import Optional, Sequence

from matplotlib import pyplot as plt

from .loess import LoessFit, LoessSmoother


@dataclass
class SmoothPlotOptions:
    """
    Visual options of a smoothed scatterplot.

    Parameters
    ----------
    title, xlabel, ylabel : str, optional
        Plot title and axis labels.
    xbreaks, ybreaks : sequence of float, optional
        Tick positions; matplotlib's defaults when None.
    point_marker, point_color, point_size, point_alpha
        Marker style of the observations.
    line_color, line_width
        Style of the loess curve.
    se : bool
        Whether to shade the confidence band.
    level : float
        Confidence level of the band.
    fill_color, fill_alpha
        Style of the band.
    n : int
        Number of grid points the curve is evaluated at.
    style : str, optional
        Name of a matplotlib style used as theme, e.g. "ggplot".
    """
    title: Optional[str] = None
    xlabel: Optional[str] = None
    ylabel: Optional[str] = None
    xbreaks: Optional[Sequence[float]] = None
    ybreaks: Optional[Sequence[float]] = None
    point_marker: str = "o"
    point_color: str = "black"
    point_size: float = 20.0
    point_alpha: float = 1.0
    line_color: str = "#3366FF"
    line_width: float = 1.0
    se: bool = True
    level: float = 0.95
    fill_color: str = "grey"
    fill_alpha: float = 0.4
    n: int = 80
    style: Optional[str] = None

    def __post_init__(self):
        if not 0 < self.level < 1:
            raise ValueError(f"Confidence level must lie in (0, 1), got {self.level}.")
        for name in ("point_alpha", "fill_alpha"):
            if not 0 <= getattr(self, name) <= 1:
                raise ValueError(f"`{name}` must lie in [0, 1].")
        if self.n < 2:
            raise ValueError("The curve needs at least 2 grid points.")
        if self.line_width < 0 or self.point_size < 0:
            raise ValueError("Sizes must be non-negative.")

    @classmethod
    def from_mapping(cls, options):
        """
        Build options from a mapping, rejecting unknown names.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ValueError(f"Unknown plot options: {', '.join(unknown)}.")
        return cls(**options)

    def updated(self, **changes):
        """
        Copy of the options with some fields changed.
        """
        known = {f.name for f in fields(self)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValueError(f"Unknown plot options: {', '.join(unknown)}.")
        return replace(self, **changes)


def draw_smooth(ax, x, y, curve: LoessFit, options: SmoothPlotOptions):
    """
    Draw observations, a precomputed curve and its band on `ax`.
    """
    ax.scatter(x, y,
               marker=options.point_marker,
               c=options.point_color,
               s=options.point_size,
               alpha=options.point_alpha)
    if options.se:
        lower, upper = curve.band(options.level)
        ax.fill_between(curve.x, lower, upper,
                        color=options.fill_color,
                        alpha=options.fill_alpha,
                        linewidth=0)
    ax.plot(curve.x, curve.fit,
            color=options.line_color,
            linewidth=options.line_width)

    if options.title is not None:
        ax.set_title(options.title)
    if options.xlabel is not None:
        ax.set_xlabel(options.xlabel)
    if options.ylabel is not None:
        ax.set_ylabel(options.ylabel)
    if options.xbreaks is not None:
        ax.set_xticks(list(options.xbreaks))
    if options.ybreaks is not None:
        ax.set_yticks(list(options.ybreaks))
    return ax


def plot_smooth(x, y, options=None, ax=None, **smoother_kwargs):
    """
    Scatterplot of `(x, y)` with a loess curve and confidence band.

    Parameters
    ----------
    x, y : array-like
        Observations; pairs with a missing value are not fit.
    options : SmoothPlotOptions or mapping, optional
        Visual options.
    ax : matplotlib.axes.Axes, optional
        Axes to draw on; a new figure is created when None.
    **smoother_kwargs
        Parameters of `LoessSmoother` such as `span` and `degree`.

    Returns
    -------
    ax : matplotlib.axes.Axes
    curve : LoessFit
        The evaluated curve, with standard errors when `options.se`.
    """
    if options is None:
        options = SmoothPlotOptions()
    elif not isinstance(options, SmoothPlotOptions):
        options = SmoothPlotOptions.from_mapping(options)

    smoother = LoessSmoother(x, **smoother_kwargs).smooth(y)
    curve = smoother.curve(n=options.n, se=options.se)

    context = plt.style.context(options.style) if options.style else nullcontext()
    with context:
        if ax is None:
            _, ax = plt.subplots()
        draw_smooth(ax, smoother.x, smoother.y, curve, options)
    return ax, curve
