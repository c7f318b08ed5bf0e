"""Unit tests for services wiring."""

import pytest

from omnirag.retrieval.access import OpenAccessBroker
from omnirag.retrieval.extractors import RapidOcrEngine
from omnirag.services import build_services


@pytest.mark.unit
class TestBuildServices:
    """Tests for build_services function."""

    def test_default_extractor_brackets_reads(self, settings, router):
        services = build_services(settings, router=router)
        try:
            assert isinstance(services.extractor.broker, OpenAccessBroker)
            assert isinstance(services.extractor.ocr, RapidOcrEngine)
            assert services.extractor.min_confidence == settings.ocr_min_confidence
        finally:
            services.close()

    def test_components_share_settings(self, services, settings):
        assert services.indexer.min_length == settings.chunk_min_length
        assert services.retriever.fallback_limit == settings.fallback_limit
        assert services.chat.library is services.library
        assert services.chat.sources is services.sources
