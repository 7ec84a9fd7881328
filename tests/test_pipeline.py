"""
Tests for the lexiplot statistics pipeline.

These tests use a minimal synthetic corpus of inaugural-style passages to
validate the components without network access or NLTK data downloads.
"""

import json

import numpy as np
import pytest

from lexiplot.config import PipelineConfig
from lexiplot.corpus.loader import Corpus, Document, word_tokenize, resolve_stopwords
from lexiplot.dfm import (
    FeatureMatrix,
    build_dfm,
    group_matrix,
    trim_matrix,
    select_features,
    remove_features,
    weight_matrix,
)
from lexiplot.errors import (
    DivisionByZeroError,
    EmptyResultError,
    InvalidGroupError,
    LexiplotError,
)
from lexiplot.pipeline import Pipeline, main
from lexiplot.stats import compute_frequency, compute_keyness, frequency_table


PASSAGES = [
    ("1961-Kennedy", 1961, "Kennedy", "Democratic",
     "Let the word go forth from this time and place, to friend and foe alike. "
     "Ask not what your country can do for you; ask what you can do for your country."),
    ("1981-Reagan", 1981, "Reagan", "Republican",
     "Government is not the solution to our problem; government is the problem. "
     "We are a nation that has a government, not the other way around."),
    ("1985-Reagan", 1985, "Reagan", "Republican",
     "There are no limits to growth and human progress when men and women are free "
     "to follow their dreams. Our nation is poised for greatness."),
    ("2009-Obama", 2009, "Obama", "Democratic",
     "We gather because we have chosen hope over fear. Our nation's strength has not "
     "waned. America, we cannot fail."),
]


def _make_test_corpus() -> Corpus:
    """Create a small corpus with Year / President / Party metadata."""
    return Corpus([
        Document(docname=name, text=text,
                 meta={"Year": year, "President": president, "Party": party})
        for name, year, president, party, text in PASSAGES
    ])


def _xy_matrix() -> FeatureMatrix:
    """Two groups with mirrored counts of features a and b."""
    return FeatureMatrix.from_dense(
        [[4, 1], [1, 4]],
        docnames=["X", "Y"],
        features=["a", "b"],
    )


class TestCorpus:
    """Test corpus storage, filtering and tokenization."""

    def test_corpus_loads(self):
        corpus = _make_test_corpus()
        assert len(corpus) == 4
        assert corpus.docnames[0] == "1961-Kennedy"

    def test_duplicate_docnames_rejected(self):
        doc = Document("a", "text")
        with pytest.raises(ValueError):
            Corpus([doc, Document("a", "other text")])

    def test_document_metadata_is_read_only(self):
        meta = {"Year": 1961}
        doc = Document("1961-Kennedy", "Ask not.", meta=meta)
        meta["Year"] = 2000
        assert doc.meta["Year"] == 1961
        with pytest.raises(TypeError):
            doc.meta["Year"] = 1962

    def test_docvar(self):
        corpus = _make_test_corpus()
        assert corpus.docvar("President") == ["Kennedy", "Reagan", "Reagan", "Obama"]

    def test_docvar_missing(self):
        corpus = _make_test_corpus()
        with pytest.raises(InvalidGroupError):
            corpus.docvar("Speaker")

    def test_subset_by_metadata(self):
        corpus = _make_test_corpus()
        reagan = corpus.subset(President="Reagan")
        assert reagan.docnames == ["1981-Reagan", "1985-Reagan"]

    def test_subset_by_predicate(self):
        corpus = _make_test_corpus()
        recent = corpus.subset(lambda d: d.meta["Year"] > 1980)
        assert len(recent) == 3
        # The source corpus is untouched
        assert len(corpus) == 4

    def test_subset_empty(self):
        corpus = _make_test_corpus()
        with pytest.raises(EmptyResultError):
            corpus.subset(Party="Whig")

    def test_subset_unknown_key(self):
        corpus = _make_test_corpus()
        with pytest.raises(InvalidGroupError):
            corpus.subset(Speaker="Lincoln")

    def test_word_tokenize_keeps_apostrophes(self):
        tokens = word_tokenize("Our nation's strength has not waned.")
        assert tokens == ["our", "nation's", "strength", "has", "not", "waned", "."]

    def test_tokens_remove_punct(self):
        corpus = _make_test_corpus()
        tokens = corpus.tokens(remove_punct=True)
        assert "," not in tokens["1961-Kennedy"]
        assert ";" not in tokens["1961-Kennedy"]
        assert tokens["1961-Kennedy"][0] == "let"

    def test_tokens_remove_stopword_list(self):
        corpus = _make_test_corpus()
        tokens = corpus.tokens(remove_stopwords=["The", "and"])
        assert "the" not in tokens["1981-Reagan"]
        assert "and" not in tokens["1985-Reagan"]

    def test_resolve_stopwords_rejects_string(self):
        with pytest.raises(TypeError):
            resolve_stopwords("the")

    def test_summary(self):
        summary = _make_test_corpus().summary()
        assert summary["documents"] == 4
        assert summary["total_tokens"] > 0
        assert summary["metadata_keys"] == ["Year", "President", "Party"]

    def test_from_json(self, tmp_path):
        records = [
            {"docname": name, "text": text, "Year": year, "President": president}
            for name, year, president, _, text in PASSAGES
        ]
        path = tmp_path / "corpus.json"
        path.write_text(json.dumps({"documents": records}))

        loaded = Corpus.from_json(path)
        assert loaded.docnames == [p[0] for p in PASSAGES]
        assert loaded["1981-Reagan"].meta["Year"] == 1981
        assert "text" not in loaded["1981-Reagan"].meta

    def test_from_text_files(self, tmp_path):
        for name, _, _, _, text in PASSAGES:
            (tmp_path / f"{name}.txt").write_text(text, encoding="utf-8")

        loaded = Corpus.from_text_files(tmp_path)
        assert len(loaded) == 4
        assert loaded["2009-Obama"].meta == {"Year": 2009, "President": "Obama"}

    def test_from_text_files_empty_directory(self, tmp_path):
        with pytest.raises(EmptyResultError):
            Corpus.from_text_files(tmp_path)


class TestFeatureMatrixBuilder:
    """Test feature matrix construction, grouping and trimming."""

    def test_counts(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True)
        assert dfm.ndoc == 4
        assert dfm.row("1981-Reagan")["government"] == 3
        assert dfm.row("1961-Kennedy")["country"] == 2

    def test_punctuation_removed(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True)
        assert "," not in dfm.features
        assert "." not in dfm.features

    def test_punctuation_kept_by_default(self):
        dfm = build_dfm(_make_test_corpus())
        assert "." in dfm.features

    def test_features_in_first_seen_order(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True)
        assert dfm.features[:4] == ("let", "the", "word", "go")

    def test_stopwords_removed_before_counting(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True, remove_stopwords=["the", "is"])
        assert "the" not in dfm.features
        assert "is" not in dfm.features
        assert "government" in dfm.features

    def test_everything_filtered(self):
        corpus = Corpus([Document("d1", "The the, the.")])
        with pytest.raises(EmptyResultError):
            build_dfm(corpus, remove_punct=True, remove_stopwords=["the"])

    def test_groups(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True, groups="President")
        assert dfm.docnames == ("Kennedy", "Reagan", "Obama")
        assert dfm.row("Reagan")["nation"] == 2
        assert dfm.row("Obama")["nation's"] == 1

    def test_grouped_metadata_keeps_shared_values(self):
        dfm = build_dfm(_make_test_corpus(), groups="President")
        reagan = dfm.docvars[dfm.row_index("Reagan")]
        assert reagan["Party"] == "Republican"
        assert "Year" not in reagan

    def test_group_by_label_sequence(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True)
        grouped = group_matrix(dfm, ["early", "late", "late", "late"])
        assert grouped.docnames == ("early", "late")
        np.testing.assert_allclose(grouped.column_sums(), dfm.column_sums())

    def test_invalid_group(self):
        with pytest.raises(InvalidGroupError):
            build_dfm(_make_test_corpus(), groups="Speaker")

    def test_trim_after_grouping(self):
        dfm = build_dfm(
            _make_test_corpus(), remove_punct=True, groups="President", min_docfreq=2
        )
        assert "government" not in dfm.features
        assert "our" in dfm.features
        assert (dfm.docfreq() >= 2).all()

    def test_trim_min_termfreq(self):
        m = FeatureMatrix.from_dense([[5, 3, 0]], docnames=["d1"], features=["a", "b", "c"])
        trimmed = trim_matrix(m, min_termfreq=1)
        assert trimmed.features == ("a", "b")
        assert trimmed.to_dense().tolist() == [[5.0, 3.0]]

    def test_trim_removes_everything(self):
        m = FeatureMatrix.from_dense([[1, 2]], docnames=["d1"], features=["a", "b"])
        with pytest.raises(EmptyResultError):
            trim_matrix(m, min_termfreq=10)

    def test_select_and_remove_features(self):
        m = FeatureMatrix.from_dense([[1, 2, 3]], docnames=["d1"], features=["a", "b", "c"])
        assert select_features(m, ["c", "a"]).features == ("a", "c")
        assert remove_features(m, ["b"]).features == ("a", "c")
        with pytest.raises(EmptyResultError):
            select_features(m, ["z"])

    def test_matrix_label_validation(self):
        with pytest.raises(ValueError):
            FeatureMatrix.from_dense([[1, 2]], docnames=["d1"], features=["a", "a"])
        with pytest.raises(ValueError):
            FeatureMatrix.from_dense([[1, 2], [3, 4]], docnames=["d1", "d1"], features=["a", "b"])
        with pytest.raises(ValueError):
            FeatureMatrix.from_dense([[1, -2]], docnames=["d1"], features=["a", "b"])

    def test_unknown_row(self):
        with pytest.raises(InvalidGroupError):
            _xy_matrix().row("Z")


class TestWeighting:
    """Test the weighting engine."""

    def test_prop_rows_sum_to_one(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True)
        weighted = weight_matrix(dfm, "prop")
        np.testing.assert_allclose(weighted.row_sums(), np.ones(dfm.ndoc))

    def test_prop_per_hundred(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True)
        weighted = weight_matrix(dfm, "prop", scale=100)
        np.testing.assert_allclose(weighted.row_sums(), np.full(dfm.ndoc, 100.0))
        assert weighted.weight_scheme == "prop*100"

    def test_labels_unchanged(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True)
        weighted = weight_matrix(dfm, "prop")
        assert weighted.docnames == dfm.docnames
        assert weighted.features == dfm.features

    def test_input_not_mutated(self):
        m = FeatureMatrix.from_dense([[2, 6], [1, 1]], docnames=["d1", "d2"], features=["a", "b"])
        before = m.to_dense().copy()
        for scheme in ("count", "prop", "propmax", "boolean", "logcount"):
            weight_matrix(m, scheme, scale=3)
        np.testing.assert_array_equal(m.to_dense(), before)
        assert m.weight_scheme == "count"

    def test_zero_row_prop(self):
        m = FeatureMatrix.from_dense([[1, 2], [0, 0]], docnames=["d1", "d2"], features=["a", "b"])
        with pytest.raises(DivisionByZeroError):
            weight_matrix(m, "prop")
        with pytest.raises(ZeroDivisionError):
            weight_matrix(m, "propmax")

    def test_other_schemes(self):
        m = FeatureMatrix.from_dense([[10, 5, 0]], docnames=["d1"], features=["a", "b", "c"])
        assert weight_matrix(m, "propmax").to_dense().tolist() == [[1.0, 0.5, 0.0]]
        assert weight_matrix(m, "boolean").to_dense().tolist() == [[1.0, 1.0, 0.0]]
        assert weight_matrix(m, "logcount").to_dense()[0, 0] == pytest.approx(2.0)

    def test_unknown_scheme(self):
        with pytest.raises(ValueError):
            weight_matrix(_xy_matrix(), "tfidf")


class TestFrequency:
    """Test frequency statistics."""

    def test_ranks_have_no_gaps(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True)
        records = compute_frequency(dfm)
        assert [r.rank for r in records] == list(range(1, len(records) + 1))

    def test_count_weighting_round_trip(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True)
        records = compute_frequency(weight_matrix(dfm, "count"))
        sums = dict(zip(dfm.features, dfm.column_sums()))
        assert {r.feature: r.frequency for r in records} == sums

    def test_top_one_with_tie(self):
        m = FeatureMatrix.from_dense([[2, 5, 5]], docnames=["d1"], features=["x", "y", "z"])
        records = compute_frequency(m, n=1)
        assert len(records) == 1
        assert records[0].feature == "y"
        assert records[0].frequency == 5
        assert records[0].rank == 1

    def test_relative_frequency_and_docfreq(self):
        m = FeatureMatrix.from_dense(
            [[3, 1, 0], [1, 0, 0]], docnames=["d1", "d2"], features=["a", "b", "c"]
        )
        records = compute_frequency(m)
        by_feature = {r.feature: r for r in records}
        assert set(by_feature) == {"a", "b"}
        assert by_feature["a"].relative_frequency == pytest.approx(0.8)
        assert by_feature["a"].docfreq == 2
        assert by_feature["b"].docfreq == 1

    def test_grouped(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True)
        records = compute_frequency(dfm, n=3, groups="Party")
        table = frequency_table(records)
        assert list(table) == ["Democratic", "Republican"]
        for group_records in table.values():
            assert [r.rank for r in group_records] == [1, 2, 3]
        assert table["Republican"][0].feature in {"government", "is", "are", "the", "to"}

    def test_grouped_relative_frequencies_sum_to_one(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True)
        table = frequency_table(compute_frequency(dfm, groups="President"))
        for group_records in table.values():
            assert sum(r.relative_frequency for r in group_records) == pytest.approx(1.0)

    def test_invalid_n(self):
        with pytest.raises(ValueError):
            compute_frequency(_xy_matrix(), n=0)

    def test_empty(self):
        m = FeatureMatrix.from_dense([[0, 0]], docnames=["d1"], features=["a", "b"])
        with pytest.raises(EmptyResultError):
            compute_frequency(m)


class TestKeyness:
    """Test keyness statistics."""

    def test_direction(self):
        records = compute_keyness(_xy_matrix(), target="X")
        by_feature = {r.feature: r for r in records}
        assert by_feature["a"].statistic > 0
        assert by_feature["a"].direction == "target"
        assert by_feature["b"].statistic < 0
        assert by_feature["b"].direction == "reference"

    def test_direction_when_yates_reaches_zero(self):
        m = FeatureMatrix.from_dense([[2, 8], [1, 9]], docnames=["X", "Y"], features=["a", "b"])
        forward = {r.feature: r for r in compute_keyness(m, target="X")}
        assert forward["a"].statistic == 0
        assert forward["a"].direction == "target"
        assert forward["b"].direction == "reference"

        backward = {r.feature: r for r in compute_keyness(m, target="Y")}
        assert backward["a"].direction == "reference"
        assert backward["b"].direction == "target"

    def test_yates_chi2_value(self):
        records = compute_keyness(_xy_matrix(), target="X", reference="Y")
        by_feature = {r.feature: r for r in records}
        assert by_feature["a"].statistic == pytest.approx(1.6)
        assert by_feature["b"].statistic == pytest.approx(-1.6)

    def test_uncorrected_chi2_value(self):
        records = compute_keyness(_xy_matrix(), target="X", correction="none")
        assert {r.feature: r.statistic for r in records}["a"] == pytest.approx(3.6)

    @pytest.mark.parametrize("measure", ["chi2", "lr", "exact"])
    def test_swap_flips_sign(self, measure):
        m = FeatureMatrix.from_dense(
            [[10, 3, 7, 0], [2, 6, 7, 4]],
            docnames=["X", "Y"],
            features=["a", "b", "c", "d"],
        )
        forward = {r.feature: r.statistic for r in compute_keyness(m, "X", "Y", measure=measure)}
        backward = {r.feature: r.statistic for r in compute_keyness(m, "Y", "X", measure=measure)}
        assert forward.keys() == backward.keys()
        for feature, stat in forward.items():
            assert backward[feature] == pytest.approx(-stat)

    def test_sorted_by_magnitude(self):
        m = FeatureMatrix.from_dense(
            [[10, 3, 7, 0], [2, 6, 7, 4]],
            docnames=["X", "Y"],
            features=["a", "b", "c", "d"],
        )
        stats = [abs(r.statistic) for r in compute_keyness(m, "X")]
        assert stats == sorted(stats, reverse=True)

    def test_absent_features_excluded(self):
        m = FeatureMatrix.from_dense(
            [[4, 1, 0], [1, 4, 0], [0, 0, 9]],
            docnames=["X", "Y", "Z"],
            features=["a", "b", "c"],
        )
        features = {r.feature for r in compute_keyness(m, "X", reference="Y")}
        assert features == {"a", "b"}

    def test_reference_defaults_to_rest(self):
        m = FeatureMatrix.from_dense(
            [[4, 1], [1, 2], [0, 2]],
            docnames=["X", "Y", "Z"],
            features=["a", "b"],
        )
        rest = compute_keyness(m, "X")
        assert {r.feature: r.n_reference for r in rest} == {"a": 1.0, "b": 4.0}

    def test_p_values(self):
        for measure in ("chi2", "lr", "exact"):
            for r in compute_keyness(_xy_matrix(), "X", measure=measure):
                assert 0.0 <= r.p_value <= 1.0
        assert all(r.p_value is None for r in compute_keyness(_xy_matrix(), "X", measure="pmi"))

    def test_grouped_corpus(self):
        dfm = build_dfm(_make_test_corpus(), remove_punct=True)
        records = compute_keyness(dfm, target="Reagan", groups="President")
        assert records[0].feature == "government"
        assert records[0].direction == "target"
        assert records[0].n_target == 3
        assert records[0].n_reference == 0

    def test_invalid_rows(self):
        with pytest.raises(InvalidGroupError):
            compute_keyness(_xy_matrix(), target="Z")
        with pytest.raises(InvalidGroupError):
            compute_keyness(_xy_matrix(), target="X", reference="Z")
        with pytest.raises(ValueError):
            compute_keyness(_xy_matrix(), target="X", reference="X")

    def test_single_row(self):
        m = FeatureMatrix.from_dense([[1, 2]], docnames=["X"], features=["a", "b"])
        with pytest.raises(LexiplotError):
            compute_keyness(m, target="X")

    def test_unknown_measure(self):
        with pytest.raises(ValueError):
            compute_keyness(_xy_matrix(), target="X", measure="tscore")


class TestPipeline:
    """Test the end-to-end pipeline."""

    def _config(self, tmp_path) -> PipelineConfig:
        config = PipelineConfig()
        config.analysis.output_dir = str(tmp_path / "out")
        config.analysis.generate_plots = False
        config.dfm.remove_stopwords = ["the", "a", "and", "to"]
        config.weight.scheme = "prop"
        config.weight.scale = 100
        config.frequency.n = 5
        config.keyness.target = "Reagan"
        config.keyness.groups = "President"
        config.dispersion.keywords = ["nation*"]
        return config

    def test_run(self, tmp_path):
        config = self._config(tmp_path)
        pipeline = Pipeline(config, corpus=_make_test_corpus())
        results = pipeline.run()

        for phase in ("corpus", "dfm", "frequency", "keyness", "dispersion"):
            assert "error" not in results[phase], results[phase]
        assert results["dispersion"]["scale"] == "relative"
        assert results["dispersion"]["occurrences"] == {"nation*": 3}
        assert results["plots"]["status"] == "skipped"

        out = tmp_path / "out"
        for name in ("corpus_summary.json", "frequency.json", "keyness.json",
                     "dispersion.json", "pipeline_summary.json"):
            assert (out / name).exists()

    def test_failed_phase_is_recorded(self, tmp_path):
        config = self._config(tmp_path)
        config.keyness.target = "Nixon"
        results = Pipeline(config, corpus=_make_test_corpus()).run()
        assert "error" in results["keyness"]
        assert "error" not in results["dispersion"]

    def test_plots_with_prop_weighting(self, tmp_path):
        config = self._config(tmp_path)
        config.analysis.generate_plots = True
        config.weight.scale = 1.0
        results = Pipeline(config, corpus=_make_test_corpus()).run()

        assert "error" not in results["plots"], results["plots"]
        assert results["plots"]["failed"] == {}
        figures = tmp_path / "out" / "figures"
        for name in ("frequency", "wordcloud", "keyness", "xray"):
            assert (figures / f"{name}.png").exists(), name

    def test_failing_plot_does_not_stop_others(self, tmp_path):
        config = self._config(tmp_path)
        config.analysis.generate_plots = True
        config.wordcloud.min_count = 1000
        results = Pipeline(config, corpus=_make_test_corpus()).run()

        assert list(results["plots"]["failed"]) == ["wordcloud"]
        assert results["plots"]["plots"] == ["frequency", "keyness", "xray"]
        figures = tmp_path / "out" / "figures"
        assert not (figures / "wordcloud.png").exists()
        assert (figures / "keyness.png").exists()
        assert (figures / "xray.png").exists()

    def test_missing_prerequisite(self, tmp_path):
        config = self._config(tmp_path)
        config.phases = ["frequency"]
        results = Pipeline(config).run()
        assert "error" in results["frequency"]

    def test_config_yaml_round_trip(self, tmp_path):
        config = self._config(tmp_path)
        path = tmp_path / "config.yaml"
        config.to_yaml(path)
        loaded = PipelineConfig.from_yaml(path)
        assert loaded.dfm.remove_stopwords == ["the", "a", "and", "to"]
        assert loaded.keyness.target == "Reagan"
        assert loaded.dispersion.keywords == ["nation*"]
        assert loaded.phases == config.phases

    def test_main(self, tmp_path):
        records = [
            {"docname": name, "text": text, "President": president}
            for name, _, president, _, text in PASSAGES
        ]
        corpus_path = tmp_path / "corpus.json"
        corpus_path.write_text(json.dumps(records))

        config = self._config(tmp_path)
        config.corpus.path = str(corpus_path)
        config_path = tmp_path / "config.yaml"
        config.to_yaml(config_path)

        assert main(["--config", str(config_path), "--phases", "corpus", "dfm", "frequency"]) == 0
        assert (tmp_path / "out" / "frequency.json").exists()


class TestStopwordLookup:
    """Test the missing-NLTK-data error path."""

    def test_missing_stopwords_hint(self, monkeypatch):
        class _MissingStopwords:
            def words(self, *args):
                raise LookupError("Resource stopwords not found.")

        monkeypatch.setattr("nltk.corpus.stopwords", _MissingStopwords())
        with pytest.raises(LookupError) as excinfo:
            resolve_stopwords(True)
        assert "nltk.downloader stopwords" in str(excinfo.value)
        assert excinfo.value.__cause__ is None
        assert excinfo.value.__suppress_context__
