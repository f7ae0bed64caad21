import asyncio

import pytest

from conftest import make_snapshot
from rag_engine.schemas.chunk import ChunkRecord, ParentRef
from rag_engine.schemas.document import AnswerSnapshot, DocumentType
from rag_engine.schemas.search import SearchFilters, SearchSort


PARENT = ParentRef("question", "q1")


def chunk(index: int, content: str = "text", embedding=None, provider_id="provider-1",
          parent: ParentRef = PARENT) -> ChunkRecord:
    return ChunkRecord(
        parent_type=parent.type,
        parent_id=parent.id,
        chunk_index=index,
        content=content,
        embedding=embedding,
        embedding_provider_id=provider_id if embedding is not None else None,
    )


@pytest.mark.asyncio
async def test_replace_swaps_whole_generation(chunk_store):
    old = [chunk(0, embedding=[1.0, 0.0]), chunk(1, embedding=[0.0, 1.0])]
    new = [chunk(0, embedding=[1.0, 1.0])]
    await chunk_store.replace_chunks(PARENT, old)

    await chunk_store.replace_chunks(PARENT, new)

    stored = await chunk_store.get_for_parent(PARENT)
    assert [c.id for c in stored] == [new[0].id]
    matches = await chunk_store.nearest([1.0, 0.0], limit=10)
    assert {m.chunk.id for m in matches} == {new[0].id}


@pytest.mark.asyncio
async def test_concurrent_readers_never_see_mixed_generations(chunk_store):
    generations = [[chunk(i, content=f"gen{g}") for i in range(5)] for g in range(10)]
    await chunk_store.replace_chunks(PARENT, generations[0])

    async def writer():
        for generation in generations[1:]:
            await chunk_store.replace_chunks(PARENT, generation)
            await asyncio.sleep(0)

    async def reader():
        seen = []
        for _ in range(20):
            seen.append({c.content for c in await chunk_store.get_for_parent(PARENT)})
            await asyncio.sleep(0)
        return seen

    _, snapshots = await asyncio.gather(writer(), reader())
    assert all(len(contents) == 1 for contents in snapshots)


@pytest.mark.asyncio
async def test_replace_rejects_foreign_or_duplicate_chunks(chunk_store):
    with pytest.raises(ValueError):
        await chunk_store.replace_chunks(PARENT, [chunk(0, parent=ParentRef("article", "a1"))])
    with pytest.raises(ValueError):
        await chunk_store.replace_chunks(PARENT, [chunk(0), chunk(0)])


@pytest.mark.asyncio
async def test_stored_chunks_are_isolated_copies(chunk_store):
    records = [chunk(0, content="original")]
    await chunk_store.replace_chunks(PARENT, records)
    records[0].content = "mutated"

    stored = await chunk_store.get_for_parent(PARENT)
    stored[0].content = "mutated again"

    assert (await chunk_store.get_for_parent(PARENT))[0].content == "original"


@pytest.mark.asyncio
async def test_nearest_orders_by_distance_and_filters(chunk_store):
    other = ParentRef("article", "a1")
    await chunk_store.replace_chunks(PARENT, [
        chunk(0, embedding=[1.0, 0.0]),
        chunk(1, embedding=[0.7, 0.7]),
        chunk(2, embedding=[0.0, 1.0], provider_id="provider-2"),
        chunk(3),
    ])
    await chunk_store.replace_chunks(other, [chunk(0, embedding=[0.9, 0.1], parent=other)])

    matches = await chunk_store.nearest([1.0, 0.0], limit=10, provider_id="provider-1")

    assert [(m.chunk.parent_id, m.chunk.chunk_index) for m in matches] == [
        ("q1", 0), ("a1", 0), ("q1", 1)
    ]
    assert matches[0].distance == pytest.approx(0.0, abs=1e-6)
    assert matches[0].similarity == pytest.approx(1.0, abs=1e-6)

    only_questions = await chunk_store.nearest([1.0, 0.0], limit=10, parent_types=["question"])
    assert {m.chunk.parent_type for m in only_questions} == {"question"}

    assert len(await chunk_store.nearest([1.0, 0.0], limit=1)) == 1


@pytest.mark.asyncio
async def test_search_content_is_case_insensitive_and_scoped(chunk_store):
    other = ParentRef("question", "q2")
    await chunk_store.replace_chunks(PARENT, [chunk(0, content="Reset your PASSWORD here")])
    await chunk_store.replace_chunks(other, [chunk(0, content="password rules", parent=other)])

    found = await chunk_store.search_content("password", limit=10)
    assert {c.parent_id for c in found} == {"q1", "q2"}

    scoped = await chunk_store.search_content("password", limit=10, parents={other})
    assert [c.parent_id for c in scoped] == ["q2"]

    assert await chunk_store.search_content("   ", limit=10) == []


@pytest.mark.asyncio
async def test_purge_and_embedded_parents(chunk_store):
    other = ParentRef("article", "a1")
    await chunk_store.replace_chunks(PARENT, [chunk(0, embedding=[1.0], provider_id="old")])
    await chunk_store.replace_chunks(other, [chunk(0, embedding=[1.0], parent=other)])

    assert await chunk_store.embedded_parents("provider-1") == {other}
    assert await chunk_store.purge_other_providers("provider-1") == 1
    assert await chunk_store.get_for_parent(PARENT) == []


@pytest.mark.asyncio
async def test_mark_stale_clears_embeddings(chunk_store):
    await chunk_store.replace_chunks(PARENT, [chunk(0, embedding=[1.0]), chunk(1, embedding=[0.5])])

    assert await chunk_store.mark_stale(PARENT) == 2

    stored = await chunk_store.get_for_parent(PARENT)
    assert all(not c.is_embedded and c.embedding_provider_id is None for c in stored)
    assert await chunk_store.nearest([1.0], limit=5) == []


@pytest.mark.asyncio
async def test_keyword_search_ranks_title_match_first(catalog):
    await catalog.upsert(make_snapshot(
        "body-only", title="Setting up a login page",
        body="We use Ruby and handle authentication with Devise.", age_days=5,
    ))
    await catalog.upsert(make_snapshot(
        "title-match", title="Ruby authentication basics", body="How to sign users in.",
    ))
    await catalog.upsert(make_snapshot("unrelated", title="Cooking pasta", body="Boil water."))

    matches, total = await catalog.keyword_search(
        "Ruby authentication", SearchFilters(), SearchSort.RELEVANCE, 0, 10
    )

    assert total == 2
    assert [m.snapshot.id for m in matches] == ["title-match", "body-only"]
    assert matches[0].rank > matches[1].rank


@pytest.mark.asyncio
async def test_keyword_search_uses_answer_text(catalog):
    await catalog.upsert(make_snapshot(
        "q1", title="Login trouble", body="Cannot sign in.",
        answers=[AnswerSnapshot(id="a1", body="Clear the devise session cookie.")],
    ))

    matches, total = await catalog.keyword_search(
        "devise", SearchFilters(), SearchSort.RELEVANCE, 0, 10
    )

    assert total == 1
    assert matches[0].snapshot.id == "q1"


@pytest.mark.asyncio
async def test_keyword_search_filters_and_sorts(catalog):
    await catalog.upsert(make_snapshot("old", title="Rails tips", scope_id="s1", author_id="u1",
                                       tags=["rails", "ruby"], vote_score=10, age_days=0))
    await catalog.upsert(make_snapshot("new", title="Rails news", scope_id="s1", author_id="u2",
                                       tags=["rails"], vote_score=1, age_days=9))
    await catalog.upsert(make_snapshot("elsewhere", title="Rails elsewhere", scope_id="s2",
                                       age_days=3))

    newest, total = await catalog.keyword_search(
        "", SearchFilters(scope_id="s1"), SearchSort.NEWEST, 0, 10
    )
    assert total == 2
    assert [m.snapshot.id for m in newest] == ["new", "old"]

    oldest, _ = await catalog.keyword_search("rails", SearchFilters(), SearchSort.OLDEST, 0, 10)
    assert [m.snapshot.id for m in oldest] == ["old", "elsewhere", "new"]

    votes, _ = await catalog.keyword_search("rails", SearchFilters(), SearchSort.VOTES, 0, 10)
    assert votes[0].snapshot.id == "old"

    tagged, total = await catalog.keyword_search(
        "", SearchFilters(tags=["ruby", "golang"]), SearchSort.NEWEST, 0, 10
    )
    assert total == 1 and tagged[0].snapshot.id == "old"

    by_author, _ = await catalog.keyword_search(
        "rails", SearchFilters(author_id="u2"), SearchSort.RELEVANCE, 0, 10
    )
    assert [m.snapshot.id for m in by_author] == ["new"]

    page, total = await catalog.keyword_search("rails", SearchFilters(), SearchSort.OLDEST, 1, 1)
    assert total == 3
    assert [m.snapshot.id for m in page] == ["elsewhere"]


@pytest.mark.asyncio
async def test_tag_filter_matches_any_requested_tag(catalog):
    await catalog.upsert(make_snapshot("q1", title="Ruby question", tags=["ruby"], age_days=0))
    await catalog.upsert(make_snapshot("q2", title="Rails question", tags=["rails"], age_days=1))
    await catalog.upsert(make_snapshot("q3", title="Go question", tags=["golang"]))

    matches, total = await catalog.keyword_search(
        "", SearchFilters(tags=["ruby", "rails"]), SearchSort.NEWEST, 0, 20
    )

    assert total == 2
    assert [m.snapshot.id for m in matches] == ["q2", "q1"]


def test_filters_match_snapshot_with_one_shared_tag():
    snapshot = make_snapshot("q1", tags=["ruby"])

    assert SearchFilters(tags=["ruby", "rails"]).matches(snapshot)
    assert not SearchFilters(tags=["python"]).matches(snapshot)


@pytest.mark.asyncio
async def test_suggest_puts_prefix_matches_first(catalog):
    await catalog.upsert(make_snapshot("1", title="Using Ruby on Rails"))
    await catalog.upsert(make_snapshot("2", title="Ruby gems explained in depth"))
    await catalog.upsert(make_snapshot("3", title="Ruby basics"))
    await catalog.upsert(make_snapshot("4", title="Ruby article", doc_type=DocumentType.ARTICLE))

    suggestions = await catalog.suggest("ruby", None, 5, types=["question"])

    assert [s.id for s in suggestions] == ["3", "2", "1"]


@pytest.mark.asyncio
async def test_catalog_get_many_and_list_refs(catalog):
    await catalog.upsert(make_snapshot("1", title="One", scope_id="s1"))
    await catalog.upsert(make_snapshot("2", title="Two", scope_id="s2"))

    found = await catalog.get_many([ParentRef("question", "1"), ParentRef("question", "missing")])
    assert list(found) == [ParentRef("question", "1")]

    assert await catalog.list_refs(scope_id="s2") == [ParentRef("question", "2")]
    assert await catalog.remove(ParentRef("question", "2")) is True
    assert await catalog.remove(ParentRef("question", "2")) is False
