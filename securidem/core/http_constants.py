"""Constantes HTTP pour éviter les valeurs magiques dans le code.

Ce module définit les codes de statut HTTP utilisés par les routes et les tests, ainsi que les
en-têtes et limites propres à l'API municipale.
"""

# Codes de statut HTTP courants
HTTP_OK = 200
HTTP_CREATED = 201
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409
HTTP_UNPROCESSABLE = 422
HTTP_INTERNAL_SERVER_ERROR = 500

# En-têtes
COMMUNE_HEADER = "x-commune-id"
APP_KEY_HEADER = "x-app-key"
NO_STORE = "no-store, max-age=0"

# Pagination
DEFAULT_PAGE_SIZE = 15
