"""
Visualization Module
====================

Draws the coordinate tables produced by ``lexiplot.plotting.projector``.
The renderer only reads ``PlotTable`` rows; every statistic and every
coordinate is computed upstream.

Plot Types
----------
    Frequency plots
        Dot plot of the top features by frequency, one panel per group
        when the table is grouped.

    Keyness plots
        Horizontal bars of the strongest target features and, below them,
        the strongest reference features, colored by direction.

    Lexical dispersion ("x-ray") plots
        One row per document and one column per keyword, with a tick at
        every occurrence on an absolute or relative token axis.

    Scale plots
        Document positions with 95% intervals as a dot plot, or feature
        weights against fixed effects as a labelled scatter.

    Wordclouds
        Rendered with the ``wordcloud`` package from table weights; a
        comparison cloud draws one panel per group.

Configuration
-------------
    All plots are saved to a configurable output directory. File format,
    DPI and figure size come from ``PlotConfig``; the default theme is
    seaborn's ``whitegrid``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for server/CLI use
import matplotlib.pyplot as plt
import seaborn as sns
from wordcloud import WordCloud

from .projector import PlotTable

logger = logging.getLogger(__name__)


@dataclass
class PlotConfig:
    """Configuration for plot aesthetics and output.

    Attributes:
        figsize: Default figure size as (width, height) in inches.
        dpi: Resolution for saved figures.
        file_format: Output file format ('png', 'pdf', 'svg').
        style: Seaborn style preset.
        palette: Seaborn color palette name.
        font_scale: Scaling factor for all font sizes.
        title_fontsize: Font size for plot titles.
        label_fontsize: Font size for axis labels.
        target_color: Bar color for target-side keyness features.
        reference_color: Bar color for reference-side keyness features.
        highlight_color: Marker color for highlighted scale labels.
    """
    figsize: tuple[float, float] = (10, 7)
    dpi: int = 150
    file_format: str = "png"
    style: str = "whitegrid"
    palette: str = "deep"
    font_scale: float = 1.0
    title_fontsize: int = 14
    label_fontsize: int = 11
    target_color: str = "#1F77B4"
    reference_color: str = "#7F7F7F"
    highlight_color: str = "#D32F2F"


def _require(table: PlotTable, kind: str) -> None:
    if table.kind != kind:
        raise ValueError(f"Expected a {kind!r} table, got {table.kind!r}")


class Visualizer:
    """
    Renders plot tables and saves them.

    Each ``plot_*`` method draws one table, saves it to the output
    directory and returns the figure.

    Examples
    --------
    >>> viz = Visualizer(output_dir="./figures")
    >>> viz.plot_keyness(project_keyness(records, n=15))
    >>> viz.plot_xray(project_dispersion(query))
    """

    def __init__(
        self,
        output_dir: str | Path = "./figures",
        config: Optional[PlotConfig] = None,
    ):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.config = config or PlotConfig()

        sns.set_theme(
            style=self.config.style,
            palette=self.config.palette,
            font_scale=self.config.font_scale,
        )

        logger.info(f"Visualizer initialized, output directory: {self.output_dir}")

    def _save_figure(self, fig: plt.Figure, filename: str) -> Path:
        """Save a figure to the output directory and close it."""
        fig.tight_layout()
        filepath = self.output_dir / f"{filename}.{self.config.file_format}"
        fig.savefig(
            filepath,
            dpi=self.config.dpi,
            format=self.config.file_format,
            bbox_inches="tight",
            facecolor="white",
        )
        plt.close(fig)
        logger.info(f"Saved plot: {filepath}")
        return filepath

    # ------------------------------------------------------------------
    # Frequency
    # ------------------------------------------------------------------

    def plot_frequency(
        self,
        table: PlotTable,
        filename: str = "frequency",
        title: Optional[str] = None,
    ) -> plt.Figure:
        """Dot plot of feature frequencies, ordered by rank."""
        _require(table, "frequency")
        groups = table.meta.get("groups") or [None]

        fig, axes = plt.subplots(
            1, len(groups), figsize=self.config.figsize, squeeze=False, sharex=True
        )
        for ax, group in zip(axes[0], groups):
            rows = sorted((r for r in table.rows if r.group == group), key=lambda r: r.rank)
            ax.scatter([r.frequency for r in rows], range(len(rows)), s=25)
            ax.set_yticks(range(len(rows)))
            ax.set_yticklabels([r.feature for r in rows])
            ax.invert_yaxis()
            ax.set_xlabel("Frequency", fontsize=self.config.label_fontsize)
            if group is not None:
                ax.set_title(str(group), fontsize=self.config.label_fontsize)

        fig.suptitle(title or "Feature frequency", fontsize=self.config.title_fontsize)
        self._save_figure(fig, filename)
        return fig

    # ------------------------------------------------------------------
    # Keyness
    # ------------------------------------------------------------------

    def plot_keyness(
        self,
        table: PlotTable,
        target_label: str = "Target",
        reference_label: str = "Reference",
        filename: str = "keyness",
        title: Optional[str] = None,
    ) -> plt.Figure:
        """Horizontal keyness bars, target features on top."""
        _require(table, "keyness")
        rows = list(table.rows)
        height = max(self.config.figsize[1], 0.3 * len(rows))

        fig, ax = plt.subplots(figsize=(self.config.figsize[0], height))
        colors = [
            self.config.target_color if r.direction == "target" else self.config.reference_color
            for r in rows
        ]
        ax.barh(range(len(rows)), [r.statistic for r in rows], color=colors)
        ax.set_yticks(range(len(rows)))
        ax.set_yticklabels([r.feature for r in rows])
        ax.invert_yaxis()
        ax.axvline(0, color="black", linewidth=0.8)
        ax.set_xlabel("Keyness statistic", fontsize=self.config.label_fontsize)

        handles = [
            plt.Rectangle((0, 0), 1, 1, color=self.config.target_color),
            plt.Rectangle((0, 0), 1, 1, color=self.config.reference_color),
        ]
        ax.legend(handles, [target_label, reference_label], loc="lower right")
        ax.set_title(title or f"Keyness: {target_label} vs {reference_label}",
                     fontsize=self.config.title_fontsize)

        self._save_figure(fig, filename)
        return fig

    # ------------------------------------------------------------------
    # Lexical dispersion
    # ------------------------------------------------------------------

    def plot_xray(
        self,
        table: PlotTable,
        filename: str = "xray",
        title: Optional[str] = None,
    ) -> plt.Figure:
        """Grid of documents by keywords with a tick per occurrence."""
        _require(table, "xray")
        documents = table.meta["documents"]
        keywords = table.meta["keywords"]
        scale = table.meta["scale"]
        ntokens = table.meta["ntokens"]

        fig, axes = plt.subplots(
            len(documents), len(keywords),
            figsize=(max(self.config.figsize[0], 3 * len(keywords)), 0.6 * len(documents) + 1.5),
            squeeze=False, sharex=(scale == "relative"),
        )
        for i, doc in enumerate(documents):
            for j, kw in enumerate(keywords):
                ax = axes[i][j]
                xs = [r.position for r in table.rows if r.document == doc and r.keyword == kw]
                ax.vlines(xs, 0, 1, color="black", linewidth=0.8)
                ax.set_xlim(0, 1 if scale == "relative" else max(ntokens[doc], 1))
                ax.set_yticks([])
                if j == 0:
                    ax.set_ylabel(doc, rotation=0, ha="right", va="center",
                                  fontsize=self.config.label_fontsize - 2)
                if i == 0:
                    ax.set_title(kw, fontsize=self.config.label_fontsize)
                if i < len(documents) - 1:
                    ax.set_xticklabels([])

        xlabel = "Relative token index" if scale == "relative" else "Token index"
        fig.supxlabel(xlabel, fontsize=self.config.label_fontsize)
        fig.suptitle(title or "Lexical dispersion", fontsize=self.config.title_fontsize)
        self._save_figure(fig, filename)
        return fig

    # ------------------------------------------------------------------
    # Scaling model
    # ------------------------------------------------------------------

    def plot_scale(
        self,
        table: PlotTable,
        filename: str = "scale",
        title: Optional[str] = None,
    ) -> plt.Figure:
        """Dot plot with intervals (documents) or labelled scatter (features)."""
        _require(table, "scale")
        rows = list(table.rows)
        level = table.meta.get("level", "documents")

        fig, ax = plt.subplots(figsize=self.config.figsize)
        if level == "documents":
            ys = [r.y for r in rows]
            for r in rows:
                if r.lower is not None:
                    ax.hlines(r.y, r.lower, r.upper, color="gray", linewidth=1)
            ax.scatter(
                [r.position for r in rows], ys,
                c=[self.config.highlight_color if r.highlight else "black" for r in rows],
                s=25, zorder=3,
            )
            ax.set_yticks(ys)
            ax.set_yticklabels([r.label for r in rows])
            ax.set_xlabel("Estimated position", fontsize=self.config.label_fontsize)
        else:
            ys = [0.0 if r.y is None else r.y for r in rows]
            ax.scatter([r.position for r in rows], ys, s=6, alpha=0.4, color="gray")
            for r, y in zip(rows, ys):
                if r.highlight:
                    ax.annotate(r.label, (r.position, y), color=self.config.highlight_color,
                                fontweight="bold", xytext=(3, 3), textcoords="offset points")
            ax.set_xlabel("Estimated feature weight", fontsize=self.config.label_fontsize)
            ax.set_ylabel("Fixed effect", fontsize=self.config.label_fontsize)

        ax.set_title(title or "Scaling model estimates", fontsize=self.config.title_fontsize)
        self._save_figure(fig, filename)
        return fig

    # ------------------------------------------------------------------
    # Wordcloud
    # ------------------------------------------------------------------

    def plot_wordcloud(
        self,
        table: PlotTable,
        filename: str = "wordcloud",
        title: Optional[str] = None,
        random_state: int = 42,
    ) -> plt.Figure:
        """Wordcloud from table weights; one panel per group for comparisons."""
        _require(table, "wordcloud")
        groups = table.meta.get("groups") or [None]

        ncols = min(len(groups), 3)
        nrows = math.ceil(len(groups) / ncols)
        fig, axes = plt.subplots(nrows, ncols, figsize=self.config.figsize, squeeze=False)

        for ax in axes.ravel():
            ax.axis("off")
        for ax, group in zip(axes.ravel(), groups):
            weights = {r.feature: r.weight for r in table.rows if r.group == group}
            cloud = WordCloud(
                width=800, height=500, background_color="white",
                random_state=random_state, max_words=len(weights),
            ).generate_from_frequencies(weights)
            ax.imshow(cloud, interpolation="bilinear")
            if group is not None:
                ax.set_title(str(group), fontsize=self.config.label_fontsize)

        if title:
            fig.suptitle(title, fontsize=self.config.title_fontsize)
        self._save_figure(fig, filename)
        return fig
