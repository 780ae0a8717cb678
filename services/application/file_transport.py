#!/usr/bin/env python3

import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

import requests

import settings
from domain.exceptions import InvalidRequestError, UpstreamTransferError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
PASSTHROUGH_HEADERS = ("Content-Type", "Content-Length", "Content-Disposition")


@dataclass
class ProxiedFile:
    """Open upstream response being relayed to a caller"""

    chunks: Iterator[bytes]
    headers: Dict[str, str]
    response: requests.Response

    def close(self) -> None:
        self.response.close()


class FileTransport:
    """Moves artifact bytes from the file host to disk or to a caller"""

    def __init__(self, session: requests.Session = None, timeout: float = None):
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.DOWNLOAD_TIMEOUT_SECONDS

    @staticmethod
    def prepare_save_path(save_path: str) -> str:
        """Create the target directory if needed"""
        if not save_path:
            raise InvalidRequestError.missing(["savePath"])
        try:
            os.makedirs(save_path, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cannot prepare save path {save_path}: {e}")
            raise InvalidRequestError("Invalid save path") from e
        return save_path

    def _open(self, url: str) -> requests.Response:
        response = None
        try:
            response = self.session.get(url, stream=True, timeout=self.timeout)
            response.raise_for_status()
            return response
        except requests.RequestException as e:
            logger.error(f"Failed to fetch {url}: {e}")
            if response is not None:
                response.close()
            raise UpstreamTransferError("Failed to download file from storage") from e

    def download_to_path(self, url: str, save_path: str, file_name: str) -> Tuple[str, int]:
        """Stream url into save_path/file_name; returns (path, bytes written)"""
        directory = self.prepare_save_path(save_path)
        target = os.path.join(directory, file_name)

        response = self._open(url)
        written = 0
        try:
            with open(target, "wb") as handle:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        handle.write(chunk)
                        written += len(chunk)
        except requests.RequestException as e:
            logger.error(f"Download of {url} interrupted: {e}")
            raise UpstreamTransferError("Failed to download file from storage") from e
        finally:
            response.close()

        logger.info(f"Downloaded {written} bytes from {url} to {target}")
        return target, written

    def open_stream(self, url: str) -> ProxiedFile:
        """Open url for relaying; caller must close() the result"""
        if not url:
            raise InvalidRequestError("URL parameter is required")
        logger.info(f"Proxying request to: {url}")

        response = self._open(url)
        headers = {
            name: response.headers[name]
            for name in PASSTHROUGH_HEADERS
            if response.headers.get(name)
        }
        return ProxiedFile(
            chunks=response.iter_content(chunk_size=CHUNK_SIZE),
            headers=headers,
            response=response,
        )


def download_file_name(dataset_id: str, version_id: str, suffix: Optional[str] = "download") -> str:
    parts = [dataset_id, version_id] + ([suffix] if suffix else [])
    return "_".join(parts) + ".zip"
