# FILE: main.py
"""
Kafi Assistant Backend - FastAPI Application
Version: 0.1.0

Features:
- Self-healing embedding schema (pgvector / numeric array / text fallback)
- Knowledge base bootstrap into the embedding store
- Semantic search over shop knowledge for the chat assistant
- Admin endpoints for inspecting and maintaining the store
"""
import os
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load .env FIRST before any other imports that might need env vars
load_dotenv()

from app.embeddings import run_schema_migrations, get_embedding_store
from app.embeddings.errors import ProvisioningError, StoreUnavailableError
from app.embeddings.router import router as embeddings_router
from app.rag import get_retriever, load_knowledge_base

logging.basicConfig(
    level=os.getenv("KAFI_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)

app = FastAPI(
    title="Kafi Assistant",
    version="0.1.0",
    description="POS chat assistant backend with tier-adaptive semantic search",
)

# ====== CORS ======

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:8000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ====== STARTUP ======

@app.on_event("startup")
def on_startup():
    # Verify critical env vars
    print("[startup] Checking environment variables...")
    if os.getenv("OPENAI_API_KEY"):
        print("[startup] OPENAI_API_KEY: [OK] set (enables embeddings)")
    else:
        print("[startup] OPENAI_API_KEY: [X] NOT SET - knowledge bootstrap and semantic search will fail")

    if os.getenv("KAFI_ADMIN_API_KEY"):
        print("[startup] KAFI_ADMIN_API_KEY: [OK] set")
    else:
        print("[startup] KAFI_ADMIN_API_KEY: [X] NOT SET - /embeddings endpoints will return 503")

    # Schema first: the store must know its tier before anything reads or writes
    print("[startup] Running embedding schema migrations...")
    try:
        report = run_schema_migrations(get_embedding_store())
    except (StoreUnavailableError, ProvisioningError) as e:
        print(f"[startup] Embedding store: [X] {e}")
        raise

    print(f"[startup] Embedding store: [OK] {report.tier.value} (index: {report.index or 'none'})")

    print("[startup] Initializing knowledge base...")
    stats = get_retriever().initialize(load_knowledge_base())
    if stats["skipped"]:
        print("[startup] Knowledge base: [OK] already loaded")
    else:
        print(
            f"[startup] Knowledge base: stored {stats['stored']}/{stats['staged']} items "
            f"({stats['failed_batches']} failed batches)"
        )


# ====== ROUTERS ======

# Embeddings router - protected (admin key)
app.include_router(embeddings_router)


@app.get("/health")
def health():
    return {"status": "ok"}


# For running directly with Python
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("KAFI_HOST", "127.0.0.1"),
        port=int(os.getenv("KAFI_PORT", "8000")),
        log_level=os.getenv("KAFI_LOG_LEVEL", "INFO").lower(),
    )
