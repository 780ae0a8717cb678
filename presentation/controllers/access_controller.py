#!/usr/bin/env python3

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from domain.exceptions import SetaAccessError
from presentation.models.access_models import (
    DownloadResponse,
    InstanceResponse,
    VersionResponse,
)
from services.application.access_service import AccessService

logger = logging.getLogger(__name__)


def to_http_exception(error: Exception) -> HTTPException:
    """Map access errors onto HTTP responses"""
    if isinstance(error, SetaAccessError):
        return HTTPException(status_code=error.status_code, detail=error.message)
    logger.exception(f"Unexpected error: {error}")
    return HTTPException(status_code=500, detail="Internal server error")


class AccessController:
    """Dataset access controller"""

    def __init__(self, access_service: AccessService):
        self.access_service = access_service
        self.router = APIRouter(tags=["setas"])
        self._register_routes()

    def _register_routes(self):
        """Register all access routes"""

        @self.router.get("/getRecentSeta", response_model=VersionResponse)
        async def get_recent_seta(
            id: Optional[str] = Query(None, description="Dataset ID"),
            userId: Optional[str] = Query(None, description="Requesting user ID"),
        ):
            """Latest enabled version of a dataset"""
            try:
                artifact = await run_in_threadpool(self.access_service.get_latest, id, userId)
            except Exception as e:
                raise to_http_exception(e)
            return VersionResponse.from_artifact(artifact)

        @self.router.get("/getSetaByVersion", response_model=VersionResponse)
        async def get_seta_by_version(
            id: Optional[str] = Query(None, description="Dataset ID"),
            version: Optional[str] = Query(None, description="Version ID, e.g. 1.2.0"),
            userId: Optional[str] = Query(None, description="Requesting user ID"),
        ):
            """Specific version of a dataset"""
            try:
                artifact = await run_in_threadpool(
                    self.access_service.get_by_version, id, version, userId
                )
            except Exception as e:
                raise to_http_exception(e)
            return VersionResponse.from_artifact(artifact)

        @self.router.get("/getSetaInstance", response_model=InstanceResponse)
        async def get_seta_instance(
            id: Optional[str] = Query(None, description="Dataset ID"),
            version: Optional[str] = Query(None, description="Version ID"),
            instanceId: Optional[str] = Query(None, description="Instance ID"),
            userId: Optional[str] = Query(None, description="Requesting user ID"),
        ):
            """Saved instance of a dataset version"""
            try:
                artifact = await run_in_threadpool(
                    self.access_service.get_instance, id, version, instanceId, userId
                )
            except Exception as e:
                raise to_http_exception(e)
            return InstanceResponse.from_artifact(artifact)

        @self.router.get("/downloadSetaByVersion", response_model=DownloadResponse)
        async def download_seta_by_version(
            id: Optional[str] = Query(None, description="Dataset ID"),
            version: Optional[str] = Query(None, description="Version ID"),
            userId: Optional[str] = Query(None, description="Requesting user ID"),
            savePath: Optional[str] = Query(None, description="Local directory to save into"),
        ):
            """Download the primary file of a version to a local directory"""
            try:
                result = await run_in_threadpool(
                    self.access_service.download_by_version, id, version, userId, savePath
                )
            except Exception as e:
                raise to_http_exception(e)
            return DownloadResponse.from_result(result)

        @self.router.get("/downloadRecentSeta", response_model=DownloadResponse)
        async def download_recent_seta(
            id: Optional[str] = Query(None, description="Dataset ID"),
            userId: Optional[str] = Query(None, description="Requesting user ID"),
            savePath: Optional[str] = Query(None, description="Local directory to save into"),
        ):
            """Download the primary file of the latest enabled version"""
            try:
                result = await run_in_threadpool(
                    self.access_service.download_latest, id, userId, savePath
                )
            except Exception as e:
                raise to_http_exception(e)
            return DownloadResponse.from_result(result)

        @self.router.get("/proxy")
        async def proxy(url: Optional[str] = Query(None, description="File URL to relay")):
            """Relay a file from storage to the caller"""
            try:
                proxied = await run_in_threadpool(self.access_service.open_proxy, url)
            except Exception as e:
                raise to_http_exception(e)

            return StreamingResponse(
                proxied.chunks,
                headers=proxied.headers,
                media_type=proxied.headers.get("Content-Type"),
                background=BackgroundTask(proxied.close),
            )
