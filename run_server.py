"""
Circle API Server Runner
Run this from the project root: python run_server.py
"""

import logging
import os
import sys

import uvicorn

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))

if __name__ == "__main__":
    logger.info(f"🚀 Starting Circle API on {HOST}:{PORT}...")
    try:
        uvicorn.run("circle_api.main:app", host=HOST, port=PORT)
    except KeyboardInterrupt:
        logger.info("👋 Circle API stopped by user")
