"""Tests for the Whoosh keyword provider."""

import asyncio
from unittest.mock import patch

import pytest

from hybrid_search.exceptions import BackendUnavailableError, DocumentNotFoundError
from hybrid_search.search.keyword_provider import matches_filters


@pytest.mark.unit
class TestWhooshKeywordProvider:
    @pytest.mark.asyncio
    async def test_index_search_remove_scenario(self, keyword_provider, document_factory):
        doc = document_factory(
            entity_id="doc1",
            title="Building Microservices",
            content="Designing fine-grained systems",
            rank=0.5,
        )

        index_id = await keyword_provider.index_document(doc)
        assert index_id == "Document:doc1"

        hits = await keyword_provider.search("microservices", fuzzy=True)
        assert [hit.document.entity_id for hit in hits] == ["doc1"]
        assert hits[0].score > 0
        assert hits[0].document.rank == 0.5

        assert await keyword_provider.remove_document("Document", "doc1") is True
        hits = await keyword_provider.search("microservices")
        assert all(hit.document.entity_id != "doc1" for hit in hits)

    @pytest.mark.asyncio
    async def test_upsert_keeps_one_document_with_latest_content(
        self, keyword_provider, document_factory
    ):
        await keyword_provider.index_document(
            document_factory(entity_id="doc1", title="First", content="original body")
        )
        first = await keyword_provider.get_document("Document", "doc1")

        await keyword_provider.index_document(
            document_factory(entity_id="doc1", title="Second", content="replaced body")
        )
        second = await keyword_provider.get_document("Document", "doc1")

        assert await keyword_provider.count_documents() == 1
        assert second.title == "Second"
        assert second.content == "replaced body"
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at
        assert await keyword_provider.search("original", fuzzy=False) == []

    @pytest.mark.asyncio
    async def test_concurrent_upserts_leave_single_document(
        self, keyword_provider, document_factory
    ):
        docs = [
            document_factory(entity_id="same", content=f"version {n}") for n in range(8)
        ]

        await asyncio.gather(*(keyword_provider.index_document(doc) for doc in docs))

        assert await keyword_provider.count_documents() == 1
        hits = await keyword_provider.search("version")
        assert len(hits) == 1

    @pytest.mark.asyncio
    async def test_remove_never_indexed_returns_false(self, keyword_provider):
        assert await keyword_provider.remove_document("Document", "missing") is False

    @pytest.mark.asyncio
    async def test_get_document_raises_not_found(self, keyword_provider):
        with pytest.raises(DocumentNotFoundError) as exc_info:
            await keyword_provider.get_document("Document", "missing")

        assert exc_info.value.code == "not_found"
        assert await keyword_provider.find_document("Document", "missing") is None

    @pytest.mark.asyncio
    async def test_empty_query_returns_no_hits(self, keyword_provider, document_factory):
        await keyword_provider.index_document(document_factory())

        assert await keyword_provider.search("") == []
        assert await keyword_provider.search("!!!") == []

    @pytest.mark.asyncio
    async def test_prefix_matching_only_in_fuzzy_mode(
        self, keyword_provider, document_factory
    ):
        await keyword_provider.index_document(
            document_factory(entity_id="doc1", title="Microservices patterns")
        )

        assert len(await keyword_provider.search("micro", fuzzy=True)) == 1
        assert await keyword_provider.search("micro", fuzzy=False) == []

    @pytest.mark.asyncio
    async def test_all_tokens_must_match(self, keyword_provider, document_factory):
        await keyword_provider.index_document(
            document_factory(entity_id="a", title="kafka streams", content="")
        )
        await keyword_provider.index_document(
            document_factory(entity_id="b", title="kafka connect", content="")
        )

        hits = await keyword_provider.search("kafka stream")
        assert [hit.document.entity_id for hit in hits] == ["a"]

    @pytest.mark.asyncio
    async def test_entity_type_and_metadata_filters(
        self, keyword_provider, document_factory
    ):
        await keyword_provider.index_document(
            document_factory(
                entity_type="Document",
                entity_id="d1",
                title="quarterly report",
                metadata={"category": "finance", "tags": ["q1", "q2"]},
            )
        )
        await keyword_provider.index_document(
            document_factory(
                entity_type="File",
                entity_id="f1",
                title="quarterly report",
                metadata={"category": "finance"},
            )
        )
        await keyword_provider.index_document(
            document_factory(
                entity_type="Document",
                entity_id="d2",
                title="quarterly report",
                metadata={"category": "legal"},
            )
        )

        by_type = await keyword_provider.search("report", entity_types=["File"])
        assert [hit.document.entity_id for hit in by_type] == ["f1"]

        by_meta = await keyword_provider.search(
            "report", entity_types=["Document"], filters={"category": "finance"}
        )
        assert [hit.document.entity_id for hit in by_meta] == ["d1"]

        by_tag = await keyword_provider.search("report", filters={"tags": "q2"})
        assert [hit.document.entity_id for hit in by_tag] == ["d1"]

    @pytest.mark.asyncio
    async def test_limit_and_offset(self, keyword_provider, document_factory):
        for n in range(5):
            await keyword_provider.index_document(
                document_factory(entity_id=f"doc{n}", title="paging test", content="")
            )

        first = await keyword_provider.search("paging", limit=2, offset=0)
        second = await keyword_provider.search("paging", limit=2, offset=2)
        rest = await keyword_provider.search("paging", limit=10, offset=4)

        ids = [hit.document.entity_id for hit in first + second + rest]
        assert len(ids) == 5
        assert len(set(ids)) == 5

    @pytest.mark.asyncio
    async def test_vector_ref_round_trip(self, keyword_provider, document_factory):
        await keyword_provider.index_document(document_factory(entity_id="doc1"))
        await keyword_provider.index_document(document_factory(entity_id="doc2"))

        assert await keyword_provider.set_vector_ref("Document", "doc1", "vec-1") is True
        assert await keyword_provider.set_vector_ref("Document", "nope", "vec-x") is False

        found = await keyword_provider.find_by_vector_ref("vec-1")
        assert found.entity_id == "doc1"

        missing = []
        async for batch in keyword_provider.iter_documents_without_vector_ref(10):
            missing.extend(doc.entity_id for doc in batch)
        assert missing == ["doc2"]

    @pytest.mark.asyncio
    async def test_reindex_preserves_vector_ref(self, keyword_provider, document_factory):
        await keyword_provider.index_document(document_factory(entity_id="doc1"))
        await keyword_provider.set_vector_ref("Document", "doc1", "vec-1")

        await keyword_provider.index_document(
            document_factory(entity_id="doc1", title="changed")
        )

        doc = await keyword_provider.get_document("Document", "doc1")
        assert doc.vector_ref == "vec-1"
        assert doc.title == "changed"

    @pytest.mark.asyncio
    async def test_update_rank(self, keyword_provider, document_factory):
        await keyword_provider.index_document(document_factory(entity_id="doc1"))

        assert await keyword_provider.update_rank("Document", "doc1", 3.5) is True
        doc = await keyword_provider.get_document("Document", "doc1")
        assert doc.rank == 3.5

    @pytest.mark.asyncio
    async def test_bulk_index_in_batches(self, keyword_provider, document_factory):
        docs = [document_factory(entity_id=f"bulk{n}") for n in range(7)]

        ids = await keyword_provider.bulk_index(docs, batch_size=3)

        assert len(ids) == 7
        assert await keyword_provider.count_documents("Document") == 7

    @pytest.mark.asyncio
    async def test_bulk_index_repeated_key_keeps_last(
        self, keyword_provider, document_factory
    ):
        docs = [
            document_factory(entity_id="d1", title="alpha first", content="one"),
            document_factory(entity_id="d1", title="alpha second", content="two"),
        ]

        ids = await keyword_provider.bulk_index(docs)

        assert ids == ["Document:d1"]
        assert await keyword_provider.count_documents() == 1
        hits = await keyword_provider.search("alpha")
        assert [hit.document.title for hit in hits] == ["alpha second"]

    @pytest.mark.asyncio
    async def test_colons_in_identity_do_not_collide(
        self, keyword_provider, document_factory
    ):
        await keyword_provider.index_document(
            document_factory(entity_type="a:b", entity_id="c", title="left")
        )
        await keyword_provider.index_document(
            document_factory(entity_type="a", entity_id="b:c", title="right")
        )

        assert await keyword_provider.count_documents() == 2
        assert (await keyword_provider.get_document("a:b", "c")).title == "left"
        assert (await keyword_provider.get_document("a", "b:c")).title == "right"
        assert await keyword_provider.remove_document("a:b", "c") is True
        assert (await keyword_provider.get_document("a", "b:c")).title == "right"

    @pytest.mark.asyncio
    async def test_bulk_index_continues_after_failed_batch(
        self, keyword_provider, document_factory
    ):
        docs = [document_factory(entity_id=f"bulk{n}") for n in range(6)]
        original = keyword_provider._upsert_batch_sync
        calls = []

        def flaky(batch):
            calls.append(len(batch))
            if len(calls) == 1:
                raise OSError("disk full")
            return original(batch)

        with patch.object(keyword_provider, "_upsert_batch_sync", side_effect=flaky):
            ids = await keyword_provider.bulk_index(docs, batch_size=3)

        assert calls == [3, 3]
        assert ids == ["Document:bulk3", "Document:bulk4", "Document:bulk5"]

    @pytest.mark.asyncio
    async def test_backend_failure_is_not_empty_result(self, keyword_provider):
        with patch.object(
            keyword_provider, "_search_sync", side_effect=OSError("index unreadable")
        ):
            with pytest.raises(BackendUnavailableError) as exc_info:
                await keyword_provider.search("anything")

        assert exc_info.value.code == "backend_unavailable"

    @pytest.mark.asyncio
    async def test_statement_timeout_raises_backend_unavailable(self, keyword_provider):
        keyword_provider.config.query_timeout = 0.05

        def slow(*args):
            import time

            time.sleep(0.5)
            return []

        with patch.object(keyword_provider, "_search_sync", side_effect=slow):
            with pytest.raises(BackendUnavailableError, match="timed out"):
                await keyword_provider.search("anything")

    @pytest.mark.asyncio
    async def test_health_check(self, keyword_provider):
        assert await keyword_provider.health_check() is True


@pytest.mark.unit
class TestMatchesFilters:
    def test_equality(self):
        assert matches_filters({"a": 1}, {"a": 1})
        assert not matches_filters({"a": 1}, {"a": 2})

    def test_missing_key(self):
        assert not matches_filters({}, {"a": 1})

    def test_any_of(self):
        assert matches_filters({"a": "x"}, {"a": ["x", "y"]})
        assert not matches_filters({"a": "z"}, {"a": ["x", "y"]})
