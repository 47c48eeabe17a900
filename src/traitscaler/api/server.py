#!/usr/bin/env python3
"""
FastAPI server module for controller status endpoints
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from .. import __version__
from ..core.controller import TraitController

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class APIServer:
    """FastAPI server exposing controller health and per-trait status"""

    def __init__(self, controller: TraitController, config: Dict[str, Any]):
        """
        Initialize API server

        Args:
            controller: running TraitController
            config: flattened settings dictionary
        """
        self.controller = controller
        self.config = config
        self.app = FastAPI(
            title="Traitscaler API",
            description="Status of the autoscaler trait controller",
            version=__version__
        )
        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes"""

        @self.app.get("/")
        async def root():
            """Root endpoint"""
            return {
                "service": "Traitscaler",
                "version": __version__,
                "timestamp": _now()
            }

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint"""
            try:
                status = self.controller.status()
                healthy = bool(status.get("running"))
                return JSONResponse(
                    content={
                        "status": "healthy" if healthy else "unhealthy",
                        "timestamp": _now(),
                        "queue_depth": status.get("queue_depth", 0)
                    },
                    status_code=200 if healthy else 503
                )
            except Exception as e:
                logger.error(f"Health check error: {e}")
                return JSONResponse(
                    content={
                        "status": "unhealthy",
                        "error": str(e),
                        "timestamp": _now()
                    },
                    status_code=503
                )

        @self.app.get("/status")
        async def get_status():
            """Get controller status with the last reconcile outcome of every trait"""
            try:
                status = self.controller.status()
                status["config"] = self.config
                return status
            except Exception as e:
                logger.error(f"Error getting status: {e}")
                raise HTTPException(status_code=500, detail=str(e))

    def run(self, host: str = "0.0.0.0", port: int = 8080):
        """Run the API server"""
        logger.info(f"Starting API server on {host}:{port}")
        uvicorn.run(self.app, host=host, port=port, log_level="info")
