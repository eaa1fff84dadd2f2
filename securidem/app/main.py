"""
Application principale FastAPI.

Ce module assemble tous les composants de l'application : middlewares,
gestionnaires d'erreurs, routes et métriques du backend municipal.

Responsabilités du module:
- Initialiser le logging structuré
- Construire l'application FastAPI avec son titre/debug
- Ajouter les middlewares (request id, timing, métriques, CORS)
- Traduire les erreurs métier en enveloppes JSON
- Monter les routers (santé, auth, communes, contenus, comptes, incidents, appareils, facturation)
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from securidem.api.routes_admins import router as admins_router
from securidem.api.routes_auth import router as auth_router
from securidem.api.routes_billing import router as billing_router
from securidem.api.routes_communes import router as communes_router
from securidem.api.routes_content import content_routers
from securidem.api.routes_devices import router as devices_router
from securidem.api.routes_health import router as health_router
from securidem.api.routes_incidents import router as incidents_router
from securidem.apigw.errors import register_error_handlers
from securidem.app.metrics import PrometheusMiddleware, metrics_router
from securidem.core.container import container
from securidem.core.http_constants import APP_KEY_HEADER, COMMUNE_HEADER
from securidem.core.logging import setup_logging
from securidem.middlewares.request_id import RequestIDMiddleware
from securidem.middlewares.timing import TimingMiddleware


def create_app() -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Configure le logging structuré (structlog)
    - Lit les paramètres d'exécution
    - Ajoute les middlewares utiles au debug/traçabilité
    - Publie toutes les routes
    """
    settings = container.settings
    setup_logging(debug=settings.APP_DEBUG)
    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG)
    if settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(o).rstrip("/") for o in settings.CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["Authorization", "Content-Type", COMMUNE_HEADER, APP_KEY_HEADER],
        )
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(auth_router)
    app.include_router(communes_router)
    app.include_router(admins_router)
    for router in content_routers:
        app.include_router(router)
    app.include_router(incidents_router)
    app.include_router(devices_router)
    app.include_router(billing_router)
    return app


app = create_app()
