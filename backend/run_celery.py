import logging
import sys

from celery.__main__ import main as celery_main

from rag_engine import create_app
from rag_engine.core.config.settings import settings


logger = logging.getLogger(__name__)

# Create the FastAPI app to get the Celery app instance
app = create_app()
celery_app = app.celery_app

if __name__ == "__main__":
    logger.debug(f"Starting Celery worker with Redis URL: {settings.REDIS_URL}")

    # For worker: python run_celery.py -A run_celery worker -l INFO
    sys.argv[0] = "celery"
    celery_main()
