import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response
import uvicorn
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    generate_latest,
)

from .aggregation import build_transaction_metrics, fetch_details, parse_skill_ids
from .cache import SkillsCache
from .client import VantageClient
from .collector import VantageCollector
from .errors import VantageError
from .metrics import setup_metrics
from .schemas import SkillOption, TransactionMetrics
from .utils.logging import setup_logging


logger = logging.getLogger(__name__)


def create_app(
    client: Optional[VantageClient] = None,
    registry: CollectorRegistry = REGISTRY,
    detail_limit: Optional[int] = None,
    skills_cache: Optional[SkillsCache] = None,
) -> FastAPI:
    """Build the exporter application around a Vantage client.

    The collector is registered on ``registry`` and served from /metrics.
    """
    client = client or VantageClient()
    if detail_limit is None:
        detail_limit = int(os.getenv("VANTAGE_DETAIL_LIMIT") or 0)
    skills_cache = skills_cache or SkillsCache(client)

    registry.register(VantageCollector(client, detail_limit=detail_limit))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(f"Vantage exporter using {client.base_url}")
        yield
        client.close()

    app = FastAPI(title="Vantage Exporter", version="0.1.0", lifespan=lifespan)
    app.state.client = client
    app.state.registry = registry
    app.state.skills_cache = skills_cache

    setup_metrics(app)

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    # Scrapes block on upstream calls, so this runs in the threadpool
    @app.get("/metrics")
    def metrics():
        data = generate_latest(registry)
        # Use media_type without charset so Starlette appends a single charset parameter
        media_type = CONTENT_TYPE_LATEST.split("; charset=")[0]
        return Response(content=data, media_type=media_type)

    @app.get("/transaction-details", response_model=List[TransactionMetrics])
    def transaction_details(
        skills: Optional[str] = Query(
            None, description="Comma-separated skill ids, optionally wrapped in braces"
        ),
    ):
        """Per-skill transaction statistics for the requested skills."""
        skill_ids = parse_skill_ids(skills)
        if not skill_ids:
            raise HTTPException(
                status_code=400,
                detail="skills parameter required (e.g., ?skills=skill1,skill2,skill3)",
            )

        logger.info(
            f"Processing transaction details for {len(skill_ids)} skills: {skill_ids}"
        )

        try:
            skill_list = client.get_skills()
        except VantageError as e:
            raise HTTPException(status_code=500, detail=f"failed to get skills: {e}")

        try:
            active = client.get_active_transactions()
        except VantageError as e:
            raise HTTPException(
                status_code=500, detail=f"failed to get active transactions: {e}"
            )

        try:
            completed = client.get_completed_transactions()
        except VantageError as e:
            raise HTTPException(
                status_code=500, detail=f"failed to get completed transactions: {e}"
            )

        details = fetch_details(client, skill_ids, completed, detail_limit)
        results = build_transaction_metrics(
            skill_ids, skill_list, active, completed, details
        )

        logger.info(f"Successfully returned metrics for {len(results)} skills")
        return results

    @app.get("/skills", response_model=List[SkillOption])
    def skills_list():
        """Skill id/name pairs for Grafana template variables."""
        try:
            skill_list = skills_cache.get()
        except VantageError as e:
            raise HTTPException(status_code=500, detail=f"failed to get skills: {e}")

        options = [
            SkillOption(value=skill.id, text=f"{skill.name} ({skill.id})")
            for skill in skill_list
        ]
        logger.info(f"Returned {len(options)} skills for template variables")
        return options

    return app


def run():
    setup_logging("vantage-exporter", os.getenv("LOG_LEVEL") or "INFO")

    port = int(os.getenv("VANTAGE_METRICS_PORT") or 8080)
    logger.info(f"Vantage exporter running on :{port}")
    logger.info("Endpoints:")
    logger.info("  /metrics - Prometheus metrics")
    logger.info(
        "  /transaction-details?skills=skill1,skill2,skill3 - Multi-skill transaction details"
    )
    logger.info("  /skills - Skills list for Grafana template variables")

    uvicorn.run(create_app(), host="0.0.0.0", port=port, reload=False)


if __name__ == "__main__":
    run()
