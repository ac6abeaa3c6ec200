#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# Zipr - Embedded resource collections for executables
# Copyright (C) 2025-2026 Zipr contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import mimetypes
import shutil

from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import unquote, urlparse

from zipr.Kernel import PUBLIC_VERSION, getLogger
from zipr.Settings import SettingsGetter

INDEX_FILE = 'index.html'
DEFAULT_CONTENT_TYPE = 'application/octet-stream'

logger = getLogger(__name__)


class CollectionHandler(BaseHTTPRequestHandler):
    """Serves GET/HEAD requests from server.fileSystem (any FileOpener)."""

    server_version = f'zipr/{PUBLIC_VERSION}'

    def _requestPath(self):
        path = unquote(urlparse(self.path).path)
        if not path or path.endswith('/'):
            path += INDEX_FILE
        return path

    def _guessType(self, name):
        ctype, _ = mimetypes.guess_type(name)
        return ctype or DEFAULT_CONTENT_TYPE

    def _openRequested(self):
        """Returns (handle, stat), or None after an error response has been sent."""
        path = self._requestPath()

        try:
            handle = self.server.fileSystem.open(path)
        except (FileNotFoundError, NotADirectoryError):
            self.send_error(HTTPStatus.NOT_FOUND)
            return None
        except PermissionError:
            self.send_error(HTTPStatus.FORBIDDEN)
            return None
        except Exception as e:
            logger.exception(e)
            self.send_error(HTTPStatus.INTERNAL_SERVER_ERROR, str(e))
            return None

        try:
            st = handle.stat()
        except Exception as e:
            handle.close()
            logger.exception(e)
            self.send_error(HTTPStatus.INTERNAL_SERVER_ERROR, str(e))
            return None

        if st.isDir:
            handle.close()
            self.send_error(HTTPStatus.NOT_FOUND)
            return None

        return handle, st

    def _sendHeaders(self, st):
        self.send_response(HTTPStatus.OK)
        self.send_header('Content-Type', self._guessType(st.name))
        self.send_header('Content-Length', str(st.size))
        if st.mtime is not None:
            self.send_header('Last-Modified', self.date_time_string(st.mtime))
        self.end_headers()

    def do_HEAD(self):
        opened = self._openRequested()
        if opened is None:
            return

        handle, st = opened
        try:
            self._sendHeaders(st)
        finally:
            handle.close()

    def do_GET(self):
        opened = self._openRequested()
        if opened is None:
            return

        handle, st = opened
        try:
            self._sendHeaders(st)
            shutil.copyfileobj(handle, self.wfile, self.server.chunkSize)
        except (ConnectionResetError, ConnectionAbortedError, BrokenPipeError) as e:
            logger.debug(f"Client disconnected while sending {self.path}: {e}")
        except Exception as e:
            # Headers are out already, the client sees a short body
            logger.exception(e)
        finally:
            handle.close()

    def log_message(self, format, *args):
        logger.debug(f"{self.address_string()} - {format % args}")


class CollectionServer(ThreadingHTTPServer):

    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, fileSystem, serverAddress, requestHandlerClass=None, chunkSize=None):
        self.fileSystem = fileSystem
        self.chunkSize = chunkSize or SettingsGetter.getInstance().chunkSize

        if requestHandlerClass is None:
            requestHandlerClass = CollectionHandler

        super().__init__(serverAddress, requestHandlerClass)

    @property
    def url(self):
        host, port = self.server_address[:2]
        return f'http://{host}:{port}'

    def start(self):
        logger.info(f"Serving collection at {self.url}")
        self.serve_forever()

    def handle_error(self, request, client_address):
        logger.exception(f"Error while handling request from {client_address}")


def createServer(fileSystem, host='127.0.0.1', port=0, handlerClass=None, chunkSize=None):
    # Port 0 lets the OS pick a free port, read it back from server.server_address
    return CollectionServer(fileSystem, (host, port), handlerClass, chunkSize)
