"""
CLI smoke tests. The engine is replaced so no database or model is touched.
"""
import pytest
from typer.testing import CliRunner

from vaultrag import __version__
from vaultrag.cli import main as cli
from vaultrag.schema import IndexingResult, IndexStatistics, QueryResult

runner = CliRunner()


class StubEngine:
    instances = []

    def __init__(self, *args, **kwargs):
        self.kwargs = kwargs
        self.calls = []
        self.store = type("Store", (), {"table_name": "embeddings_384"})()
        StubEngine.instances.append(self)

    async def reindex(self, scope=None, reindex_all=False, progress=None, cancel=None):
        self.calls.append(("reindex", scope, reindex_all))
        return IndexingResult(status="completed", files_indexed=2, chunks_total=5, chunks_inserted=5,
                              skipped_files=["broken.md"])

    async def hybrid_query(self, text, scope=None, limit=None, language=None):
        self.calls.append(("hybrid", text, limit, language))
        return [QueryResult(id=1, path="notes/fox.md", mtime=1, content="The fox",
                            metadata={"startLine": 3, "endLine": 4}, similarity=1.0, rrf_score=1.0)]

    async def similarity_query(self, text, scope=None, limit=None):
        self.calls.append(("vector", text, limit))
        return []

    async def fulltext_query(self, text, scope=None, limit=None, language=None):
        self.calls.append(("fulltext", text, limit, language))
        return []

    async def get_statistics(self, scope=None):
        return IndexStatistics(total_files=2, total_chunks=5)


@pytest.fixture(autouse=True)
def stub_engine(mocker):
    StubEngine.instances = []
    mocker.patch("vaultrag.rag.engine.RAGEngine", StubEngine)
    mocker.patch("vaultrag.utils.db.dispose_engine", mocker.AsyncMock())
    return StubEngine


def test_version():
    result = runner.invoke(cli.app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_reindex_with_scope(tmp_path):
    result = runner.invoke(cli.app, ["reindex", "--all", "--folder", "notes", "--tag", "animals",
                                     "--vault-path", str(tmp_path)])

    assert result.exit_code == 0
    assert "Status: completed" in result.stdout
    assert "broken.md" in result.stdout
    _, scope, reindex_all = StubEngine.instances[0].calls[0]
    assert reindex_all is True
    assert [(item.type, item.content) for item in scope] == [("folder", "notes"), ("tag", "animals")]


def test_query_hybrid():
    result = runner.invoke(cli.app, ["query", "where is the fox", "--limit", "3"])

    assert result.exit_code == 0
    assert "notes/fox.md:3-4" in result.stdout
    assert StubEngine.instances[0].calls == [("hybrid", "where is the fox", 3, None)]


def test_query_fulltext_no_results():
    result = runner.invoke(cli.app, ["query", "fox", "--mode", "fulltext", "--language", "simple"])

    assert result.exit_code == 0
    assert "No results." in result.stdout
    assert StubEngine.instances[0].calls == [("fulltext", "fox", None, "simple")]


def test_query_rejects_unknown_mode():
    result = runner.invoke(cli.app, ["query", "fox", "--mode", "telepathy"])

    assert result.exit_code != 0


def test_stats():
    result = runner.invoke(cli.app, ["stats"])

    assert result.exit_code == 0
    assert "embeddings_384" in result.stdout
    assert "Chunks: 5" in result.stdout
