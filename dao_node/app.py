"""
dao_node/app.py
---------------
Thin entrypoint for running the DAO node via:

    uvicorn dao_node.app:app

Routes live in dao_node.dao_api; the executor is built lazily from
dao_config.yaml + DAO_* environment variables on the first request.
"""

import logging

from .config import get_log_level, load_config
from .dao_api import create_app

logging.basicConfig(level=get_log_level(load_config()), format="%(asctime)s [%(levelname)s] %(message)s")

app = create_app()


if __name__ == "__main__":
    # Convenience for: python -m dao_node.app
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
