"""
Endpoint de santé pour vérifier la disponibilité de l'API et du stockage.
"""

from fastapi import APIRouter

from securidem.core.container import container
from securidem.domain.entities import utcnow

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Vérifie la disponibilité de l'API et le backend de stockage."""
    return {
        "status": "ok",
        "storage": getattr(container, "storage_backend", "unknown"),
        "timestamp": utcnow().isoformat(),
    }
