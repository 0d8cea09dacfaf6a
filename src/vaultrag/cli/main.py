import asyncio
from typing import List, Optional

import typer
from vaultrag.core.logging import setup_logging, get_logger

# Initialize logging before anything else
setup_logging()
logger = get_logger(__name__)

app = typer.Typer()

QUERY_MODES = ("hybrid", "vector", "fulltext")


def _scope_items(folders: Optional[List[str]], tags: Optional[List[str]], files: Optional[List[str]]):
    from vaultrag.schema import ScopeItem

    items = []
    items += [ScopeItem(type="folder", content=f) for f in folders or []]
    items += [ScopeItem(type="tag", content=t) for t in tags or []]
    items += [ScopeItem(type="file", content=f) for f in files or []]
    return items


@app.command()
def version():
    """Show version."""
    from vaultrag import __version__
    print(f"vaultrag v{__version__}")


@app.command()
def init_db():
    """Create the pgvector extension, chunk tables and indexes."""
    from vaultrag.utils.db import init_db as _init_db, dispose_engine

    async def _run():
        try:
            await _init_db()
        finally:
            await dispose_engine()

    asyncio.run(_run())
    print("Database initialized.")


@app.command()
def reindex(
    all_: bool = typer.Option(False, "--all", help="Clear and rebuild instead of indexing changed files"),
    folder: Optional[List[str]] = typer.Option(None, help="Restrict to a folder (repeatable)"),
    tag: Optional[List[str]] = typer.Option(None, help="Restrict to documents with a tag (repeatable)"),
    file: Optional[List[str]] = typer.Option(None, help="Restrict to a file (repeatable)"),
    vault_path: Optional[str] = typer.Option(None, help="Vault root (defaults to VAULT_PATH)"),
):
    """Index new and modified documents."""
    from vaultrag.config import settings
    from vaultrag.rag.engine import RAGEngine
    from vaultrag.utils.db import dispose_engine
    from vaultrag.utils.vault import VaultDocumentStore

    def _progress(p):
        typer.echo(f"\r{p.completed_chunks}/{p.total_chunks} chunks ({p.total_files} files)", nl=False)

    async def _run():
        logger.info("reindex_cli_started", reindex_all=all_)
        engine = RAGEngine(documents=VaultDocumentStore(vault_path or settings.vault_path))
        try:
            return await engine.reindex(
                scope=_scope_items(folder, tag, file),
                reindex_all=all_,
                progress=_progress,
            )
        finally:
            await dispose_engine()

    result = asyncio.run(_run())
    typer.echo("")
    print(f"Status: {result.status}")
    print(f"Files indexed: {result.files_indexed}")
    print(f"Chunks inserted: {result.chunks_inserted}/{result.chunks_total}")
    if result.skipped_files:
        print(f"Skipped ({len(result.skipped_files)}):")
        for path in result.skipped_files:
            print(f"  - {path}")


@app.command()
def query(
    text: str = typer.Argument(..., help="The search query"),
    mode: str = typer.Option("hybrid", help="hybrid, vector or fulltext"),
    limit: Optional[int] = typer.Option(None, help="Results per channel"),
    language: Optional[str] = typer.Option(None, help="Full-text search configuration (e.g. english)"),
    folder: Optional[List[str]] = typer.Option(None, help="Restrict to a folder (repeatable)"),
    tag: Optional[List[str]] = typer.Option(None, help="Restrict to documents with a tag (repeatable)"),
):
    """Search the index."""
    from vaultrag.rag.engine import RAGEngine
    from vaultrag.utils.db import dispose_engine

    if mode not in QUERY_MODES:
        raise typer.BadParameter(f"mode must be one of {', '.join(QUERY_MODES)}")

    async def _run():
        engine = RAGEngine()
        scope = _scope_items(folder, tag, None)
        try:
            if mode == "vector":
                return await engine.similarity_query(text, scope=scope, limit=limit)
            if mode == "fulltext":
                return await engine.fulltext_query(text, scope=scope, limit=limit, language=language)
            return await engine.hybrid_query(text, scope=scope, limit=limit, language=language)
        finally:
            await dispose_engine()

    results = asyncio.run(_run())
    if not results:
        print("No results.")
        return

    for i, result in enumerate(results, start=1):
        score = result.similarity if result.similarity is not None else result.rank
        print(f"\n[{i}] {result.path}:{result.start_line}-{result.end_line}  (score {score:.4f})")
        print("-" * 40)
        print(result.content[:500])


@app.command()
def stats(
    folder: Optional[List[str]] = typer.Option(None, help="Restrict to a folder (repeatable)"),
    tag: Optional[List[str]] = typer.Option(None, help="Restrict to documents with a tag (repeatable)"),
):
    """Show index statistics."""
    from vaultrag.rag.engine import RAGEngine
    from vaultrag.utils.db import dispose_engine

    async def _run():
        engine = RAGEngine()
        try:
            statistics = await engine.get_statistics(_scope_items(folder, tag, None))
            return engine, statistics
        finally:
            await dispose_engine()

    engine, statistics = asyncio.run(_run())
    print(f"\nTable: {engine.store.table_name}")
    print("-" * 40)
    print(f"Indexed files: {statistics.total_files}")
    print(f"Chunks: {statistics.total_chunks}")
    print("-" * 40)


if __name__ == "__main__":
    app()
