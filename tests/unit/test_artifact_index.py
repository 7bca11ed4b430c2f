"""Unit tests for the in-memory artifact index."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor

from filedepot.models.artifact import Artifact
from filedepot.storage.memory import InMemoryArtifactIndex


def _artifact(uri: str, **overrides: object) -> Artifact:
    fields: dict[str, object] = {
        "id": f"id-{uri}",
        "original_name": "a.txt",
        "stored_name": uri.rsplit("/", 1)[-1],
        "path": f"/srv{uri}",
        "uri": uri,
        "mime_type": "text/plain",
        "size": 1,
    }
    fields.update(overrides)
    return Artifact(**fields)  # type: ignore[arg-type]


class TestRegisterResolve:
    async def test_starts_empty(self, index: InMemoryArtifactIndex) -> None:
        assert await index.count() == 0
        assert await index.resolve("/uploads/x/a.txt") is None

    async def test_register_then_resolve(self, index: InMemoryArtifactIndex) -> None:
        artifact = _artifact("/uploads/d/a.txt")
        assert await index.register(artifact) is artifact
        assert await index.resolve("/uploads/d/a.txt") == artifact

    async def test_register_overwrites_same_uri(self, index: InMemoryArtifactIndex) -> None:
        await index.register(_artifact("/uploads/d/a.txt", id="first"))
        await index.register(_artifact("/uploads/d/a.txt", id="second"))
        resolved = await index.resolve("/uploads/d/a.txt")
        assert resolved is not None
        assert resolved.id == "second"
        assert await index.count() == 1

    async def test_unregister(self, index: InMemoryArtifactIndex) -> None:
        artifact = await index.register(_artifact("/uploads/d/a.txt"))
        assert await index.unregister(artifact.uri) == artifact
        assert await index.unregister(artifact.uri) is None
        assert await index.count() == 0


class TestResolveMany:
    async def test_preserves_order_and_gaps(self, index: InMemoryArtifactIndex) -> None:
        a = await index.register(_artifact("/uploads/d/a"))
        b = await index.register(_artifact("/uploads/d/b"))
        result = await index.resolve_many(["/uploads/d/b", "/uploads/d/missing", "/uploads/d/a"])
        assert result == [b, None, a]

    async def test_duplicates_resolve_each_time(self, index: InMemoryArtifactIndex) -> None:
        a = await index.register(_artifact("/uploads/d/a"))
        assert await index.resolve_many(["/uploads/d/a", "/uploads/d/a"]) == [a, a]

    async def test_empty(self, index: InMemoryArtifactIndex) -> None:
        assert await index.resolve_many([]) == []


class TestConcurrency:
    async def test_concurrent_registration_from_tasks(self, index: InMemoryArtifactIndex) -> None:
        await asyncio.gather(*(index.register(_artifact(f"/uploads/d/{i}")) for i in range(200)))
        assert await index.count() == 200

    def test_concurrent_registration_from_threads(self, index: InMemoryArtifactIndex) -> None:
        def register(i: int) -> None:
            asyncio.run(index.register(_artifact(f"/uploads/d/{i}")))

        with ThreadPoolExecutor(max_workers=10) as pool:
            list(pool.map(register, range(100)))

        assert asyncio.run(index.count()) == 100
