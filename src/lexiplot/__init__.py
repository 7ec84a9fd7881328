"""
lexiplot
========

Plot data for text corpora: wordclouds, lexical dispersion ("x-ray")
plots, frequency plots, keyness plots and scaling-model plots.

The package follows one pipeline:

    Corpus -> build_dfm -> weight_matrix -> compute_frequency / compute_keyness
        -> PlotSource -> project -> PlotTable -> (Visualizer)

Every step is a pure function that returns a new value. The projector
produces plain coordinate tables; ``lexiplot.plotting.visualization``
draws them with matplotlib when figures are wanted.
"""

__version__ = "0.1.0"
