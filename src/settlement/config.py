"""Engine settings read from the environment.

Protean's own configuration (providers, processing mode) lives under
``[tool.protean]`` in pyproject.toml; these are the knobs the engine adds.
"""

import os

JWT_SECRET = os.environ.get("SETTLEMENT_JWT_SECRET", "settlement-development-signing-key-0001")
JWT_ALGORITHM = os.environ.get("SETTLEMENT_JWT_ALGORITHM", "HS256")

DEFAULT_PAGE_LIMIT = int(os.environ.get("SETTLEMENT_DEFAULT_PAGE_LIMIT", "20"))
MAX_PAGE_LIMIT = int(os.environ.get("SETTLEMENT_MAX_PAGE_LIMIT", "100"))
