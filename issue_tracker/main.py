from contextlib import asynccontextmanager

from fastapi import FastAPI

from issue_tracker.api.routes import issues, ping, work_orders
from issue_tracker.core.config import get_settings
from issue_tracker.core.logging import configure_logging, init_tracer, shutdown_tracer
from issue_tracker.issues.repository import IssueRepository
from issue_tracker.services.postgres import PostgresPoolManager


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    postgres = PostgresPoolManager(
        dsn=settings.postgres_dsn,
        min_size=settings.postgres_pool_min_size,
        max_size=settings.postgres_pool_max_size,
    )
    app.state.postgres = postgres
    app.state.issue_repository = None
    try:
        pool = await postgres.get_pool()
        repository = IssueRepository(pool)
        if settings.ensure_schema_on_startup:
            await repository.ensure_schema()
        app.state.issue_repository = repository
    except Exception:
        logger.exception("Issue backend initialisation failed; issue routes will answer 503")
    try:
        yield
    finally:
        await postgres.close()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(work_orders.router)
    app.include_router(issues.router)
    return app


app = create_app()
