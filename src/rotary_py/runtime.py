from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, cast

import boto3
from botocore.config import Config

from .client import Client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AwsCallMetric:
    service: str
    operation: str
    seconds: float
    ok: bool


@dataclass(frozen=True)
class ConnectionConfig:
    region: str | None = None
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = field(default=None, repr=False)
    session_token: str | None = field(default=None, repr=False)
    profile: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> ConnectionConfig:
        def get(name: str) -> str | None:
            return (environ.get(name) or "").strip() or None

        return cls(
            region=get("AWS_REGION") or get("AWS_DEFAULT_REGION"),
            endpoint_url=get("DYNAMODB_ENDPOINT"),
            access_key_id=get("AWS_ACCESS_KEY_ID"),
            secret_access_key=get("AWS_SECRET_ACCESS_KEY"),
            session_token=get("AWS_SESSION_TOKEN"),
            profile=get("AWS_PROFILE"),
        )


def create_boto3_config(
    *,
    connect_timeout: float = 1.0,
    read_timeout: float = 3.0,
    max_attempts: int = 3,
) -> Config:
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "adaptive"},
    )


class _InstrumentedClient:
    def __init__(self, client: Any, service: str, on_call: Callable[[AwsCallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def wrapped(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            try:
                out = attr(*args, **kwargs)
            except Exception:
                self._on_call(
                    AwsCallMetric(
                        service=self._service,
                        operation=name,
                        seconds=time.monotonic() - start,
                        ok=False,
                    )
                )
                raise

            self._on_call(
                AwsCallMetric(
                    service=self._service,
                    operation=name,
                    seconds=time.monotonic() - start,
                    ok=True,
                )
            )
            return out

        return wrapped


def instrument_boto3_client(
    client: Any,
    *,
    service: str,
    on_call: Callable[[AwsCallMetric], None],
) -> Any:
    return _InstrumentedClient(client, service, on_call)


class ClientRegistry:
    """One transport and one Client per ConnectionConfig.

    Meant to be built once by the application and passed to whatever needs a
    client; there is no module-level cache.
    """

    def __init__(
        self,
        *,
        boto3_config: Config | None = None,
        session_factory: Callable[[ConnectionConfig], Any] | None = None,
        metrics: Callable[[AwsCallMetric], None] | None = None,
    ) -> None:
        self._boto3_config = boto3_config
        self._session_factory = session_factory or _default_session
        self._metrics = metrics
        self._transports: dict[ConnectionConfig, Any] = {}
        self._clients: dict[ConnectionConfig, Client] = {}
        self._lock = threading.RLock()

    def transport(self, config: ConnectionConfig) -> Any:
        with self._lock:
            existing = self._transports.get(config)
            if existing is not None:
                return existing

            sess = self._session_factory(config)
            transport = cast(Any, sess).client(
                "dynamodb",
                region_name=config.region,
                endpoint_url=config.endpoint_url,
                config=self._boto3_config,
            )
            if self._metrics is not None:
                transport = instrument_boto3_client(transport, service="dynamodb", on_call=self._metrics)

            logger.debug(
                "created dynamodb transport region=%s endpoint=%s", config.region, config.endpoint_url
            )
            self._transports[config] = transport
            return transport

    def client(self, config: ConnectionConfig) -> Client:
        with self._lock:
            existing = self._clients.get(config)
            if existing is not None:
                return existing
            client = Client(self.transport(config))
            self._clients[config] = client
            return client

    def clear(self) -> None:
        with self._lock:
            self._transports.clear()
            self._clients.clear()


def _default_session(config: ConnectionConfig) -> Any:
    return boto3.session.Session(
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        aws_session_token=config.session_token,
        region_name=config.region,
        profile_name=config.profile,
    )
