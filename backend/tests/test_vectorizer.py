"""
Unit tests for deterministic fragment vectors and keyword enrichment.
"""

import math
from types import SimpleNamespace

from app.features.documents.schemas import IngestionConfig
from app.features.documents.vectorizer import FragmentVectorizer, KeywordEnricher, hash_vector

TEXT = "Mitochondria produce ATP through oxidative phosphorylation."


class FakeChatModel:
    def __init__(self, reply: str | None = None, error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls = []

    def invoke(self, messages):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return SimpleNamespace(content=self.reply)


class StaticEnricher:
    def __init__(self, keywords: str):
        self._keywords = keywords

    def keywords(self, text):
        return self._keywords


class BrokenEnricher:
    def keywords(self, text):
        raise TimeoutError("model timed out")


class TestHashVector:
    def test_unit_length_and_dimensions(self):
        vector = hash_vector(TEXT)
        assert len(vector) == 384
        assert math.isclose(math.sqrt(sum(v * v for v in vector)), 1.0, rel_tol=1e-9)

    def test_identical_text_gives_identical_vector(self):
        assert hash_vector(TEXT) == hash_vector(TEXT)

    def test_case_insensitive(self):
        assert hash_vector("Photosynthesis Chlorophyll") == hash_vector("photosynthesis chlorophyll")

    def test_different_text_gives_different_vector(self):
        assert hash_vector(TEXT) != hash_vector("Ribosomes translate messenger RNA into proteins.")

    def test_short_tokens_used_when_nothing_longer(self):
        vector = hash_vector("x = 2, y = 3, z = 4; a + b = c")
        assert math.isclose(math.sqrt(sum(v * v for v in vector)), 1.0, rel_tol=1e-9)
        assert vector != hash_vector("x = 5, y = 6, z = 7; a + b = c")

    def test_short_tokens_ignored_next_to_longer_ones(self):
        assert hash_vector("a cell") == hash_vector("cell")

    def test_no_word_characters_gives_zero_vector(self):
        assert hash_vector("") == [0.0] * 384
        assert hash_vector("= + ;") == [0.0] * 384

    def test_custom_dimensions(self):
        assert len(hash_vector(TEXT, dimensions=64)) == 64


class TestKeywordEnricher:
    def test_parses_and_limits_keywords(self):
        model = FakeChatModel(reply="mitosis, chromosomes\nspindle, , cell cycle")
        enricher = KeywordEnricher(max_keywords=3, llm_factory=lambda: model)

        assert enricher.keywords("some chunk") == "mitosis, chromosomes, spindle"
        assert len(model.calls) == 1

    def test_model_built_once(self):
        built = []

        def factory():
            built.append(1)
            return FakeChatModel(reply="osmosis")

        enricher = KeywordEnricher(llm_factory=factory)
        enricher.keywords("one")
        enricher.keywords("two")
        assert len(built) == 1


class TestFragmentVectorizer:
    def test_plain_hashing_by_default(self):
        vectorizer = FragmentVectorizer(IngestionConfig())
        assert vectorizer.enricher is None
        assert vectorizer.vectorize(TEXT) == hash_vector(TEXT)

    def test_enrichment_enabled_from_config(self):
        vectorizer = FragmentVectorizer(IngestionConfig(keyword_enrichment_enabled=True, max_enrichment_keywords=4))
        assert isinstance(vectorizer.enricher, KeywordEnricher)
        assert vectorizer.enricher.max_keywords == 4

    def test_keywords_prepended_before_hashing(self):
        vectorizer = FragmentVectorizer(IngestionConfig(), enricher=StaticEnricher("atp, mitochondria"))
        assert vectorizer.vectorize(TEXT) == hash_vector(f"atp, mitochondria\n{TEXT}")

    def test_enrichment_failure_falls_back_to_raw_text(self):
        vectorizer = FragmentVectorizer(IngestionConfig(), enricher=BrokenEnricher())
        assert vectorizer.vectorize(TEXT) == hash_vector(TEXT)

    def test_respects_configured_dimensions(self):
        vectorizer = FragmentVectorizer(IngestionConfig(vector_dimensions=128))
        assert len(vectorizer.vectorize(TEXT)) == 128
