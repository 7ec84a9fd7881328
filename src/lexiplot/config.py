"""
Configuration
=============

Central configuration for the lexiplot pipeline.
Loads from YAML config files with sensible defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import yaml


@dataclass
class CorpusConfig:
    """Corpus loading configuration."""
    source: str = "json"  # "json" or "text_files"
    path: str = "data/corpus.json"
    text_field: str = "text"
    docname_field: str = "docname"
    pattern: str = "*.txt"
    # Metadata equality filters applied with Corpus.subset
    subset: dict = field(default_factory=dict)


@dataclass
class DfmConfig:
    """Feature matrix construction."""
    remove_stopwords: Union[bool, list[str]] = True
    remove_punct: bool = True
    lowercase: bool = True
    groups: Optional[str] = None
    min_termfreq: Optional[float] = None
    min_docfreq: Optional[int] = None


@dataclass
class WeightConfig:
    """Weighting applied before frequency statistics."""
    scheme: str = "count"  # "count", "prop", "propmax", "boolean", "logcount"
    scale: float = 1.0


@dataclass
class FrequencyConfig:
    """Frequency statistics configuration."""
    n: Optional[int] = 20
    groups: Optional[str] = None


@dataclass
class KeynessConfig:
    """Keyness configuration. Skipped when no target is set."""
    target: Optional[str] = None
    reference: Optional[str] = None
    groups: Optional[str] = None
    measure: str = "chi2"
    correction: str = "default"
    n: int = 20


@dataclass
class DispersionConfig:
    """Lexical dispersion configuration. Skipped when no keywords are set."""
    keywords: list[str] = field(default_factory=list)
    scale: Optional[str] = None  # "absolute", "relative" or None for the default


@dataclass
class WordcloudConfig:
    """Wordcloud configuration."""
    max_words: int = 100
    min_count: float = 1  # raw token count, independent of the weighting
    comparison: bool = False


@dataclass
class AnalysisConfig:
    """Output configuration."""
    output_dir: str = "output"
    generate_plots: bool = True
    file_format: str = "png"
    dpi: int = 150


@dataclass
class PipelineConfig:
    """Master configuration for the full pipeline."""
    corpus: CorpusConfig = field(default_factory=CorpusConfig)
    dfm: DfmConfig = field(default_factory=DfmConfig)
    weight: WeightConfig = field(default_factory=WeightConfig)
    frequency: FrequencyConfig = field(default_factory=FrequencyConfig)
    keyness: KeynessConfig = field(default_factory=KeynessConfig)
    dispersion: DispersionConfig = field(default_factory=DispersionConfig)
    wordcloud: WordcloudConfig = field(default_factory=WordcloudConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)

    # Pipeline control: which phases to run
    phases: list[str] = field(default_factory=lambda: [
        "corpus",
        "dfm",
        "frequency",
        "keyness",
        "dispersion",
        "plots",
    ])

    @classmethod
    def from_yaml(cls, path: str | Path) -> PipelineConfig:
        """Load configuration from a YAML file."""
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        config = cls()

        if "corpus" in data:
            config.corpus = CorpusConfig(**data["corpus"])
        if "dfm" in data:
            config.dfm = DfmConfig(**data["dfm"])
        if "weight" in data:
            config.weight = WeightConfig(**data["weight"])
        if "frequency" in data:
            config.frequency = FrequencyConfig(**data["frequency"])
        if "keyness" in data:
            config.keyness = KeynessConfig(**data["keyness"])
        if "dispersion" in data:
            config.dispersion = DispersionConfig(**data["dispersion"])
        if "wordcloud" in data:
            config.wordcloud = WordcloudConfig(**data["wordcloud"])
        if "analysis" in data:
            config.analysis = AnalysisConfig(**data["analysis"])
        if "phases" in data:
            config.phases = data["phases"]

        return config

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        import dataclasses
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = dataclasses.asdict(self)
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
