"""
Main Pipeline
=============

Orchestrates the plotting workflow end to end.

Pipeline Phases:
    1. CORPUS     - Load the corpus and apply metadata filters
    2. DFM        - Build (and weight) the document-feature matrix
    3. FREQUENCY  - Feature frequency statistics
    4. KEYNESS    - Keyness of a target group against a reference
    5. DISPERSION - Keyword occurrence positions for x-ray plots
    6. PLOTS      - Project and render every available result

Each phase writes its results to the output directory as JSON. A failing
phase is logged and recorded; later phases still run.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from .config import PipelineConfig
from .corpus.loader import Corpus
from .dfm.builder import build_dfm
from .dfm.matrix import FeatureMatrix
from .dfm.weighting import weight_matrix
from .plotting.projector import (
    PlotTable,
    project_dispersion,
    project_frequency,
    project_keyness,
    project_wordcloud,
)
from .plotting.sources import DispersionQuery
from .stats.frequency import FrequencyRecord, compute_frequency
from .stats.keyness import KeynessRecord, compute_keyness

logger = logging.getLogger(__name__)


class Pipeline:
    """
    Orchestrates corpus -> matrix -> statistics -> plots.

    Usage:
        config = PipelineConfig.from_yaml("configs/default.yaml")
        pipeline = Pipeline(config)
        results = pipeline.run()
    """

    def __init__(self, config: PipelineConfig, corpus: Optional[Corpus] = None):
        self.config = config
        self.output_dir = Path(config.analysis.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        # Pipeline state: populated as phases complete
        self.corpus: Optional[Corpus] = corpus
        self.dfm: Optional[FeatureMatrix] = None
        self.weighted: Optional[FeatureMatrix] = None
        self.frequency_records: list[FrequencyRecord] = []
        self.keyness_records: list[KeynessRecord] = []
        self.dispersion_table: Optional[PlotTable] = None

    def run(self) -> dict:
        """
        Run all configured pipeline phases.

        Returns:
            Dict of phase_name -> result summary.
        """
        results = {}
        phases = self.config.phases
        total_start = time.time()

        logger.info(f"Starting lexiplot pipeline")
        logger.info(f"Phases to run: {phases}")
        logger.info(f"Output directory: {self.output_dir}")

        for phase in phases:
            phase_start = time.time()
            logger.info(f"PHASE: {phase.upper()}")

            try:
                if phase == "corpus":
                    results[phase] = self._run_corpus()
                elif phase == "dfm":
                    results[phase] = self._run_dfm()
                elif phase == "frequency":
                    results[phase] = self._run_frequency()
                elif phase == "keyness":
                    results[phase] = self._run_keyness()
                elif phase == "dispersion":
                    results[phase] = self._run_dispersion()
                elif phase == "plots":
                    results[phase] = self._run_plots()
                else:
                    logger.warning(f"Unknown phase: {phase}, skipping")
                    continue

                elapsed = time.time() - phase_start
                logger.info(f"Phase {phase} completed in {elapsed:.1f}s")

            except Exception as e:
                logger.error(f"Phase {phase} failed: {e}", exc_info=True)
                results[phase] = {"error": str(e)}

        total_elapsed = time.time() - total_start
        logger.info(f"Pipeline completed in {total_elapsed:.1f}s")

        self._save_summary(results, total_elapsed)

        return results

    def _write_json(self, name: str, payload) -> Path:
        path = self.output_dir / name
        with open(path, "w") as f:
            json.dump(payload, f, indent=2, default=str)
        return path

    def _run_corpus(self) -> dict:
        """Phase 1: Load the corpus (unless one was passed in) and filter it."""
        cfg = self.config.corpus

        if self.corpus is None:
            if cfg.source == "json":
                self.corpus = Corpus.from_json(
                    cfg.path,
                    text_field=cfg.text_field,
                    docname_field=cfg.docname_field,
                )
            elif cfg.source == "text_files":
                self.corpus = Corpus.from_text_files(cfg.path, pattern=cfg.pattern)
            else:
                raise ValueError(f"Unknown corpus source: {cfg.source}")

        if cfg.subset:
            self.corpus = self.corpus.subset(**cfg.subset)

        summary = self.corpus.summary()
        logger.info(f"Corpus loaded: {summary['documents']} documents, "
                    f"{summary['total_tokens']} tokens")

        self._write_json("corpus_summary.json", summary)
        return {k: v for k, v in summary.items() if k != "per_document"}

    def _run_dfm(self) -> dict:
        """Phase 2: Build the count matrix and the weighted copy."""
        if self.corpus is None:
            raise RuntimeError("Corpus must be loaded before dfm phase")

        cfg = self.config.dfm
        self.dfm = build_dfm(
            self.corpus,
            remove_stopwords=cfg.remove_stopwords,
            remove_punct=cfg.remove_punct,
            lowercase=cfg.lowercase,
            groups=cfg.groups,
            min_termfreq=cfg.min_termfreq,
            min_docfreq=cfg.min_docfreq,
        )

        wcfg = self.config.weight
        self.weighted = weight_matrix(self.dfm, wcfg.scheme, scale=wcfg.scale)

        return {
            "rows": self.dfm.ndoc,
            "features": self.dfm.nfeat,
            "weight_scheme": self.weighted.weight_scheme,
        }

    def _run_frequency(self) -> dict:
        """Phase 3: Frequency statistics on the weighted matrix."""
        if self.weighted is None:
            raise RuntimeError("Feature matrix must exist before frequency phase")

        cfg = self.config.frequency
        self.frequency_records = compute_frequency(self.weighted, n=cfg.n, groups=cfg.groups)
        self._write_json("frequency.json", [asdict(r) for r in self.frequency_records])

        return {
            "n_records": len(self.frequency_records),
            "top": [r.feature for r in self.frequency_records[:10]],
        }

    def _run_keyness(self) -> dict:
        """Phase 4: Keyness on raw counts."""
        cfg = self.config.keyness
        if cfg.target is None:
            logger.info("No keyness target configured, skipping")
            return {"status": "skipped", "reason": "no target"}
        if self.dfm is None:
            raise RuntimeError("Feature matrix must exist before keyness phase")

        self.keyness_records = compute_keyness(
            self.dfm,
            target=cfg.target,
            reference=cfg.reference,
            measure=cfg.measure,
            correction=cfg.correction,
            groups=cfg.groups,
        )
        self._write_json("keyness.json", [asdict(r) for r in self.keyness_records])

        return {
            "target": cfg.target,
            "reference": cfg.reference or "rest",
            "measure": cfg.measure,
            "n_records": len(self.keyness_records),
            "top_target": [r.feature for r in self.keyness_records if r.direction == "target"][:10],
        }

    def _run_dispersion(self) -> dict:
        """Phase 5: Keyword occurrence positions."""
        cfg = self.config.dispersion
        if not cfg.keywords:
            logger.info("No dispersion keywords configured, skipping")
            return {"status": "skipped", "reason": "no keywords"}
        if self.corpus is None:
            raise RuntimeError("Corpus must be loaded before dispersion phase")

        query = DispersionQuery.from_corpus(self.corpus, cfg.keywords, scale=cfg.scale)
        self.dispersion_table = project_dispersion(query)
        self._write_json("dispersion.json", self.dispersion_table.to_records())

        return {
            "scale": self.dispersion_table.meta["scale"],
            "occurrences": {
                kw: self.dispersion_table.column("keyword").count(kw) for kw in cfg.keywords
            },
        }

    def _run_plots(self) -> dict:
        """Phase 6: Render every result that is available."""
        if not self.config.analysis.generate_plots:
            return {"status": "skipped", "reason": "plots disabled"}

        from .plotting.visualization import PlotConfig, Visualizer

        viz = Visualizer(
            output_dir=self.output_dir / "figures",
            config=PlotConfig(
                file_format=self.config.analysis.file_format,
                dpi=self.config.analysis.dpi,
            ),
        )
        kcfg = self.config.keyness
        plots = []
        if self.frequency_records:
            plots.append(("frequency", lambda: viz.plot_frequency(
                project_frequency(self.frequency_records)
            )))
        if self.dfm is not None:
            plots.append(("wordcloud", lambda: viz.plot_wordcloud(self._wordcloud_table())))
        if self.keyness_records:
            plots.append(("keyness", lambda: viz.plot_keyness(
                project_keyness(self.keyness_records, n=kcfg.n),
                target_label=kcfg.target,
                reference_label=kcfg.reference or "Reference",
            )))
        if self.dispersion_table is not None:
            plots.append(("xray", lambda: viz.plot_xray(self.dispersion_table)))

        saved = []
        failed = {}
        for name, draw in plots:
            try:
                draw()
                saved.append(name)
            except Exception as e:
                logger.error(f"Plot {name} failed: {e}", exc_info=True)
                failed[name] = str(e)

        return {"plots": saved, "failed": failed, "directory": str(viz.output_dir)}

    def _wordcloud_table(self) -> PlotTable:
        """Wordcloud weights from raw counts, so ``min_count`` is a token count."""
        wc = self.config.wordcloud
        counts = compute_frequency(self.dfm, groups=self.config.frequency.groups)
        return project_wordcloud(
            counts,
            max_words=wc.max_words,
            min_count=wc.min_count,
            comparison=wc.comparison,
        )

    def _save_summary(self, results: dict, total_elapsed: float) -> None:
        """Save pipeline run summary."""
        summary = {
            "total_elapsed_seconds": total_elapsed,
            "phases_run": list(results.keys()),
            "config": {
                "groups": self.config.dfm.groups,
                "weight_scheme": self.config.weight.scheme,
                "keyness_target": self.config.keyness.target,
                "n_keywords": len(self.config.dispersion.keywords),
            },
            "results": results,
        }

        self._write_json("pipeline_summary.json", summary)
        logger.info(f"Summary saved to {self.output_dir / 'pipeline_summary.json'}")


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for running the pipeline from command line."""
    import argparse

    parser = argparse.ArgumentParser(
        description="lexiplot: frequency, keyness and dispersion plots for text corpora",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run with default config
    lexiplot

    # Run with custom config
    lexiplot --config configs/inaugural.yaml

    # Run specific phases only
    lexiplot --phases corpus dfm frequency
        """,
    )
    parser.add_argument(
        "--config", "-c",
        default="configs/default.yaml",
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--phases", "-p",
        nargs="+",
        help="Specific phases to run (overrides config)",
    )
    parser.add_argument(
        "--output", "-o",
        help="Output directory (overrides config)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    config_path = Path(args.config)
    if config_path.exists():
        config = PipelineConfig.from_yaml(config_path)
    else:
        logger.info(f"Config file {config_path} not found, using defaults")
        config = PipelineConfig()

    if args.phases:
        config.phases = args.phases
    if args.output:
        config.analysis.output_dir = args.output

    # The NLTK stopword list is only needed for remove_stopwords: true
    if config.dfm.remove_stopwords is True:
        import nltk
        try:
            nltk.data.find("corpora/stopwords")
        except LookupError:
            nltk.download("stopwords", quiet=True)

    pipeline = Pipeline(config)
    results = pipeline.run()

    print("\n" + "=" * 60)
    print("PIPELINE COMPLETE")
    print("=" * 60)
    failed = 0
    for phase, result in results.items():
        if isinstance(result, dict) and "error" in result:
            print(f"  {phase}: FAILED - {result['error']}")
            failed += 1
        else:
            print(f"  {phase}: OK")
    print(f"\nResults saved to: {config.analysis.output_dir}/")

    return 1 if failed else 0


if __name__ == "__main__":
    import sys
    sys.exit(main())
