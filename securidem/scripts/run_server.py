"""
Lance le serveur HTTP de développement (uvicorn) avec l'hôte et le port de la configuration.
"""

import uvicorn

from securidem.app.main import app
from securidem.core.container import container


def main():
    settings = container.settings
    uvicorn.run(app, host=settings.APP_HOST, port=settings.APP_PORT, reload=False)


if __name__ == "__main__":  # pragma: no cover - script entry
    main()
