# kiosk/main.py
import uvicorn

from kiosk.api import create_app
from kiosk.utils.logging import get_logger, setup_logging
from kiosk.utils.settings import LOG_LEVEL, SERVICE_NAME

setup_logging(SERVICE_NAME, LOG_LEVEL)
logger = get_logger(__name__)

app = create_app()
logger.info(f"{SERVICE_NAME} ready")

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
