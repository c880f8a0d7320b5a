"""kopf operator wiring the cluster and zone reconcilers to watch events."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import kopf

from .cluster_controller import ClusterReconciler
from .config import ConfigReader
from .consts import CLUSTER, ZONE
from .logging_config import get_logger, log_reconcile_event
from .models import ControllerSettings, ControllerStatus, ManagerStatus, Request, ResourceKind
from .zone_controller import ZoneReconciler

logger = get_logger(__name__)

Mapper = Callable[[Dict[str, Any]], List[Request]]


def request_for_object(obj: Dict[str, Any]) -> List[Request]:
    metadata = obj.get("metadata") or {}
    return [Request(namespace=metadata.get("namespace"), name=metadata["name"])]


def requests_for_owner(owner_kind: ResourceKind) -> Mapper:
    """Map an owned object to requests for its owners of ``owner_kind``."""

    def mapper(obj: Dict[str, Any]) -> List[Request]:
        metadata = obj.get("metadata") or {}
        requests = []
        for reference in metadata.get("ownerReferences") or []:
            if reference.get("kind") != owner_kind.kind:
                continue
            if reference.get("apiVersion", "").split("/", 1)[0] != owner_kind.group:
                continue
            requests.append(Request(namespace=metadata.get("namespace"), name=reference["name"]))
        return requests

    return mapper


def retry_delay(retry: int, base: float, maximum: float) -> float:
    """Exponential backoff for the ``retry``-th consecutive failure."""
    return min(base * 2 ** min(retry, 64), maximum)


def connection_info(configuration) -> kopf.ConnectionInfo:
    """Hand the credentials loaded by the kubernetes client over to kopf.

    Args:
        configuration: A kubernetes ``client.Configuration`` with credentials loaded.

    Returns:
        Connection info for kopf's own API client.
    """
    authorization = configuration.get_api_key_with_prefix("authorization") or ""
    scheme, _, token = authorization.partition(" ")
    if not token:
        scheme, token = None, authorization or None

    return kopf.ConnectionInfo(
        server=configuration.host,
        ca_path=configuration.ssl_ca_cert,
        insecure=not configuration.verify_ssl,
        username=configuration.username or None,
        password=configuration.password or None,
        scheme=scheme,
        token=token,
        certificate_path=configuration.cert_file,
        private_key_path=configuration.key_file,
    )


class ReconcileStats:
    """Reconcile counters of one controller."""

    def __init__(self, name: str, kind: ResourceKind):
        self.name = name
        self.kind = kind
        self.reconciles = 0
        self.errors = 0
        self.last_error: Optional[str] = None
        self.last_reconcile: Optional[datetime] = None

    def record_success(self) -> None:
        self.reconciles += 1
        self.last_reconcile = datetime.now(timezone.utc)

    def record_failure(self, error: Exception) -> None:
        self.reconciles += 1
        self.errors += 1
        self.last_error = str(error)
        self.last_reconcile = datetime.now(timezone.utc)

    def status(self) -> ControllerStatus:
        return ControllerStatus(
            name=self.name,
            kind=self.kind.kind,
            reconciles=self.reconciles,
            errors=self.errors,
            last_error=self.last_error,
            last_reconcile=self.last_reconcile,
        )


class Manager:
    """Runs the cluster and zone reconcilers as kopf handlers.

    Each kind gets a watch event handler, which reconciles as soon as an
    object changes, and a timer, which reconciles every object periodically
    and retries failed reconciles with exponential backoff. Zone events are
    also routed to the owning cluster so that a drifted or deleted zone is
    restored.

    Handlers are registered on a dedicated kopf registry, so several
    managers can coexist in one process.
    """

    def __init__(self,
                 store,
                 config: ConfigReader,
                 settings: ControllerSettings,
                 clock: Optional[Callable[[], datetime]] = None,
                 registry: Optional[kopf.OperatorRegistry] = None):
        self.store = store
        self.settings = settings
        self.cluster_reconciler = ClusterReconciler(store, config)
        self.zone_reconciler = ZoneReconciler(store, config, clock=clock)
        self.cluster_stats = ReconcileStats("cluster", CLUSTER)
        self.zone_stats = ReconcileStats("zone", ZONE)
        self.registry = registry or kopf.OperatorRegistry()
        self._started = False

        self.register()

    @property
    def started(self) -> bool:
        return self._started

    def register(self) -> None:
        """Register the operator handlers on ``self.registry``."""
        registry = self.registry
        interval = self.settings.resync_seconds

        kopf.on.startup(registry=registry)(self.configure)
        kopf.on.login(registry=registry)(self.login)

        kopf.on.event(CLUSTER.group, CLUSTER.version, CLUSTER.plural,
                      registry=registry)(self.on_cluster_event)
        kopf.timer(CLUSTER.group, CLUSTER.version, CLUSTER.plural,
                   interval=interval, registry=registry)(self.on_cluster_timer)

        kopf.on.event(ZONE.group, ZONE.version, ZONE.plural,
                      registry=registry)(self.on_zone_event)
        kopf.timer(ZONE.group, ZONE.version, ZONE.plural,
                   interval=interval, registry=registry)(self.on_zone_timer)

    def configure(self, settings: kopf.OperatorSettings, **_) -> None:
        settings.watching.server_timeout = self.settings.watch_timeout_seconds
        settings.watching.client_timeout = self.settings.watch_timeout_seconds * 2
        settings.posting.level = logging.WARNING
        if self.settings.workers:
            settings.batching.worker_limit = self.settings.workers

        logger.info("Operator configured",
                    watch_timeout_seconds=self.settings.watch_timeout_seconds,
                    resync_seconds=self.settings.resync_seconds,
                    workers=self.settings.workers)

    def login(self, **_) -> kopf.ConnectionInfo:
        return connection_info(self.store.api_client.configuration)

    async def reconcile_cluster(self, request: Request, retry: int = 0) -> None:
        await self._reconcile(self.cluster_reconciler, self.cluster_stats, request, retry)

    async def reconcile_zone(self, request: Request, retry: int = 0) -> None:
        await self._reconcile(self.zone_reconciler, self.zone_stats, request, retry)

    async def _reconcile(self, reconciler, stats: ReconcileStats, request: Request, retry: int) -> None:
        """Run one reconcile, turning failures and requeues into kopf retries.

        Raises:
            kopf.TemporaryError: If the reconcile failed or asked to be requeued.
        """
        log = logger.bind(controller=stats.name, request=str(request))

        try:
            result = await reconciler.reconcile(request)
        except Exception as e:
            stats.record_failure(e)
            delay = self.retry_delay(retry)
            log.error("Reconciler error",
                      error=str(e),
                      error_type=type(e).__name__,
                      retry=retry,
                      retry_in_seconds=delay)
            raise kopf.TemporaryError(str(e), delay=delay) from e

        stats.record_success()
        log.debug("Reconciled", requeue=result.requeue, requeue_after=result.requeue_after)

        if result.requeue_after:
            raise kopf.TemporaryError("requeue requested", delay=result.requeue_after)
        if result.requeue:
            raise kopf.TemporaryError("requeue requested", delay=self.retry_delay(retry))

    def retry_delay(self, retry: int) -> float:
        return retry_delay(retry, self.settings.backoff_base_seconds, self.settings.backoff_max_seconds)

    async def on_cluster_event(self, event: Dict[str, Any], **_) -> None:
        if event.get("type") == "DELETED":
            return

        for request in request_for_object(event["object"]):
            await self._reconcile_once(self.reconcile_cluster, request)

    async def on_zone_event(self, event: Dict[str, Any], **_) -> None:
        zone = event["object"]

        requests = []
        if event.get("type") != "DELETED":
            requests.extend((self.reconcile_zone, request) for request in request_for_object(zone))
        requests.extend((self.reconcile_cluster, request) for request in requests_for_owner(CLUSTER)(zone))

        for reconcile, request in requests:
            await self._reconcile_once(reconcile, request)

    async def _reconcile_once(self, reconcile, request: Request) -> None:
        try:
            await reconcile(request)
        except kopf.TemporaryError:
            # Event handlers are not retried by kopf; the timer of the object retries it
            return

    async def on_cluster_timer(self, name: str, namespace: Optional[str], retry: int = 0, **_) -> None:
        await self.reconcile_cluster(Request(namespace=namespace, name=name), retry)

    async def on_zone_timer(self, name: str, namespace: Optional[str], retry: int = 0, **_) -> None:
        await self.reconcile_zone(Request(namespace=namespace, name=name), retry)

    async def run(self, stop_flag: asyncio.Event) -> None:
        """Run the operator until ``stop_flag`` is set."""
        ready_flag = asyncio.Event()
        readiness = asyncio.create_task(self._wait_ready(ready_flag))

        try:
            await kopf.operator(
                registry=self.registry,
                standalone=True,
                clusterwide=True,
                ready_flag=ready_flag,
                stop_flag=stop_flag,
            )
        finally:
            readiness.cancel()
            self._started = False
            log_reconcile_event(logger, "manager_stopped")

    async def _wait_ready(self, ready_flag: asyncio.Event) -> None:
        await ready_flag.wait()
        self._started = True
        log_reconcile_event(logger, "manager_started", controllers=[self.cluster_stats.name, self.zone_stats.name])

    def status(self) -> ManagerStatus:
        return ManagerStatus(
            started=self._started,
            controllers=[self.cluster_stats.status(), self.zone_stats.status()],
        )
