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

import os
import logging
import threading

# Error reporting is disabled unless ZIPR_SENTRY_DSN is set.
import sentry_sdk

from signalslot import Signal

from sentry_sdk.integrations.logging import SentryHandler, LoggingIntegration
from sentry_sdk.integrations import atexit as sentryAtexit

PUBLIC_VERSION = '1.0.0'

SENTRY_DSN_ENV = 'ZIPR_SENTRY_DSN'

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

LOG_LEVEL_MAPPING = {name: getattr(logging, name) for name in ('DEBUG', 'INFO', 'WARNING', 'ERROR')}


def configureGlobalLogLevel(logLevel):
    """Set the root logger level and make sure one console handler prints at that level"""
    rootLogger = logging.getLogger()
    rootLogger.setLevel(logLevel)

    consoleHandlers = [
        h for h in rootLogger.handlers if isinstance(h, logging.StreamHandler) and not isinstance(h, SentryHandler)
    ]
    if not consoleHandlers:
        consoleHandlers = [logging.StreamHandler()]
        rootLogger.addHandler(consoleHandlers[0])

    for handler in consoleHandlers:
        handler.setLevel(logLevel)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))


def _initSentry(version):
    sentryDsn = os.getenv(SENTRY_DSN_ENV)
    if not sentryDsn or sentry_sdk.get_client().is_active():
        return False

    # Pending events are dropped at exit instead of announced on stderr
    sentryAtexit.default_callback = lambda pending, timeout: None
    sentry_sdk.init(
        dsn=sentryDsn,
        default_integrations=False,
        integrations=[LoggingIntegration(), sentryAtexit.AtexitIntegration()],
        release=f'zipr@{version}',
    )
    return True


def getLogger(name, version=PUBLIC_VERSION):
    """
    Module logger with a SentryHandler attached, wrapped in a LoggerAdapter that
    carries the version. The handler stays inert unless ZIPR_SENTRY_DSN is set.
    """
    try:
        sentryInitialized = _initSentry(version)
    except Exception as e:
        logging.getLogger(name).warning(f"Failed to initialize Sentry: {e}")
        sentryInitialized = False

    logger = logging.getLogger(name)
    if not any(isinstance(h, SentryHandler) for h in logger.handlers):
        sentryHandler = SentryHandler()
        sentryHandler.setFormatter(logging.Formatter('%(asctime)s version[%(version)s] : %(message)s'))
        logger.addHandler(sentryHandler)

    adapter = logging.LoggerAdapter(logger, {'version': version or 'unknown'})
    if sentryInitialized:
        adapter.debug('Sentry initialized from environment')
    return adapter


_envLevel = (os.getenv('ZIPR_LOGGING_LEVEL') or '').upper()
if _envLevel in LOG_LEVEL_MAPPING:
    configureGlobalLogLevel(LOG_LEVEL_MAPPING[_envLevel])


class Singleton:
    """
    Thread-safe singleton base class.
    Subclasses override initialize() instead of __init__; it runs once per class.
    """

    _instances = {}
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        if cls not in cls._instances:
            with cls._lock:
                if cls not in cls._instances:
                    cls._instances[cls] = super().__new__(cls)
        return cls._instances[cls]

    def __init__(self, *args, **kwargs):
        if not hasattr(self, '_initialized'):
            self.initialize(*args, **kwargs)
            self._initialized = True

    def initialize(self, *args, **kwargs):
        pass

    @classmethod
    def getInstance(cls):
        if cls not in cls._instances:
            cls()
        return cls._instances[cls]

    @classmethod
    def resetInstance(cls):
        """Drop the cached instance. Only meant for test isolation."""
        with cls._lock:
            cls._instances.pop(cls, None)


class EventService(Singleton):
    """
    Dispatches events to observers. One signalslot Signal per registered event;
    observers must accept **kwargs (signalslot requirement).
    """

    def initialize(self):
        self.signals = {}

    def reset(self):
        """
        Clears all registered signals. Should only be used in test suites.
        """
        self.signals.clear()

    def isRegistered(self, event):
        return event in self.signals

    def register(self, event):
        if self.isRegistered(event):
            return False
        self.signals[event] = Signal(name=event)
        return True

    def unregister(self, event):
        if not self.isRegistered(event):
            return False

        signal = self.signals.pop(event)
        for observer in list(signal._slots):
            signal.disconnect(observer)
        return True

    def subscribe(self, event, observer):
        if not self.isRegistered(event):
            raise KeyError(f"You must register event '{event}' first.")

        signal = self.signals[event]
        if observer not in signal._slots:
            signal.connect(observer)

    def unsubscribe(self, event, observer):
        if not self.isRegistered(event):
            return

        signal = self.signals[event]
        if observer in signal._slots:
            signal.disconnect(observer)

    def trigger(self, event, **kwargs):
        """
        Trigger an event, calling all connected observers with keyword arguments.
        """
        signal = self.signals.get(event)
        if signal is None:
            return

        signal.emit(**kwargs)


class Event:
    """ Simple Event wrapper"""

    def __init__(self, key):
        self.key = key

        self.eventService = EventService.getInstance()

    def subscribe(self, observer):
        return self.eventService.subscribe(self.key, observer)

    def unsubscribe(self, observer):
        return self.eventService.unsubscribe(self.key, observer)

    def trigger(self, **kwargs):
        return self.eventService.trigger(self.key, **kwargs)


# Event pattern: RESTful + /[action] (create, update, get, delete, others...)
class ZiprEvent:
    # kwargs: collectionName, path, size
    collectionEntryCreate = Event('/collection/entry/create')
    # kwargs: collectionName, embedded, backend
    collectionBackendCreate = Event('/collection/backend/create')


eventService = EventService.getInstance()

eventService.register(ZiprEvent.collectionEntryCreate.key)
eventService.register(ZiprEvent.collectionBackendCreate.key)
