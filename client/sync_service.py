"""
Sync service for the ShiftSync client.
Reconciles the local store with the spreadsheet endpoint in an offline-first manner.
"""

import platform
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from client.reconciler import merge_records, merge_singleton
from client.transport import SheetTransport, TransportError
from shared.clock import RevisionClock
from shared.db_helpers import EntityStore, SQLiteEntityStore, record_key
from shared.logging_config import get_sync_logger
from shared.models import (ENDPOINT_FIELD, Collection, ConfigurationError,
                           SyncConfig, SyncOutcome, SyncResult, SyncStatus,
                           TimesheetEntry)
from shared.time_codec import (EMPTY_MARKERS, TimeCodec, format_instant,
                               parse_instant, resolve_timezone)
from shared.utils import clean_endpoint_url, to_int_optional, to_number

logger = get_sync_logger()

# Reconciled record by record; Settings and Company are handled separately
MERGED_COLLECTIONS = (
    Collection.EMPLOYEES,
    Collection.TIMESHEET,
    Collection.HOLIDAYS,
    Collection.PUBLIC_HOLIDAYS,
)

Instant = Union[datetime, str, None]


class SyncService:
    """
    Drives the full sync cycle and the clock-in / clock-out operations:
    - Pull the full remote state
    - Normalize spreadsheet times and merge per collection (last write wins)
    - Persist the merged collections locally
    - Push the merged state back
    """

    def __init__(self, store: Optional[EntityStore] = None,
                 transport: Optional[SheetTransport] = None,
                 config: Optional[SyncConfig] = None):
        self.store = store or SQLiteEntityStore()
        self.config = config or self._load_config()

        if self.config.ntp_server and isinstance(self.store.clock, RevisionClock):
            self.store.clock.ntp_server = self.config.ntp_server

        self.codec = TimeCodec(resolve_timezone(self.config.timezone))
        self.transport = transport or SheetTransport(timeout=self.config.timeout)

        self.is_syncing = False
        self.last_sync: Optional[str] = None
        self.last_error: Optional[str] = None
        self.last_outcome: Optional[SyncOutcome] = None

        # One cycle in flight per device
        self._sync_lock = threading.Lock()

    def _load_config(self) -> SyncConfig:
        """Load device sync settings from the local store"""
        device_id = self.store.get_setting('device_id', '')

        if not device_id:
            hostname = platform.node() or 'unknown'
            device_id = f"shiftsync-{hostname}-{uuid.uuid4().hex[:8]}"
            self.store.set_setting('device_id', device_id)
            logger.info(f"Generated new device ID: {device_id}")

        timeout = to_int_optional(self.store.get_setting('timeout', '10'))
        try:
            return SyncConfig(
                device_id=device_id,
                timeout=timeout if timeout is not None else 10,
                timezone=self.store.get_setting('timezone', '') or '',
                ntp_server=self.store.get_setting('ntp_server', '') or '',
            )
        except ConfigurationError as e:
            logger.warning(f"Ignoring invalid sync settings: {e}")
            return SyncConfig(device_id=device_id)

    def update_config(self, config: SyncConfig):
        """Update device sync settings"""
        self.config = config

        self.store.set_setting('device_id', config.device_id)
        self.store.set_setting('timeout', str(config.timeout))
        self.store.set_setting('timezone', config.timezone)
        self.store.set_setting('ntp_server', config.ntp_server)

        self.codec = TimeCodec(resolve_timezone(config.timezone))
        self.transport.timeout = config.timeout
        if isinstance(self.store.clock, RevisionClock):
            self.store.clock.ntp_server = config.ntp_server

        logger.info("Sync configuration updated")

    def get_endpoint(self) -> Optional[str]:
        """Endpoint from the company profile, None when missing or a document link"""
        company = self.store.get_company()
        return clean_endpoint_url(company.get(ENDPOINT_FIELD))

    def is_configured(self) -> bool:
        return self.get_endpoint() is not None

    def set_endpoint(self, url: str) -> Dict[str, Any]:
        """Store a new endpoint URL in the company profile"""
        company = self.store.get_company()
        company[ENDPOINT_FIELD] = url.strip()
        if not clean_endpoint_url(url):
            logger.warning("Endpoint saved but is not a deployed web app link; sync will not run")
        return self.store.update_company(company)

    def pull_merge_push(self) -> SyncResult:
        """Perform one full sync cycle.

        The result is truthy only when local state was merged and the push
        went out. ``PUSH_FAILED`` means local state already advanced and the
        cycle should be retried to repair the remote copy.
        """
        logger.info("pull_merge_push called")

        if not self._sync_lock.acquire(blocking=False):
            logger.warning("pull_merge_push: already syncing")
            return SyncResult(SyncOutcome.BUSY, error="A sync cycle is already running")

        try:
            self.is_syncing = True
            result = self._run_cycle()
            self._record_result(result)
            return result

        except Exception as e:
            self.last_error = str(e)
            logger.error(f"Sync failed: {e}")
            raise

        finally:
            self.is_syncing = False
            self._sync_lock.release()

    def _run_cycle(self) -> SyncResult:
        url = self.get_endpoint()
        if not url:
            logger.warning("pull_merge_push: no deployed endpoint configured")
            return SyncResult(SyncOutcome.CONFIG_ERROR, error="Sync endpoint is not configured")

        logger.info("pull_merge_push: pulling remote state")
        try:
            remote = self.transport.fetch_state(url)
        except TransportError as e:
            logger.error(f"Pull failed, local state untouched: {e}")
            return SyncResult(SyncOutcome.TRANSPORT_ERROR, error=str(e))

        counts = self._merge_and_persist(remote)
        logger.info(f"pull_merge_push: merged {counts}")

        try:
            self._push(url)
        except TransportError as e:
            logger.error(f"Push failed after local merge; retry to update the remote copy: {e}")
            return SyncResult(SyncOutcome.PUSH_FAILED, local_updated=True, error=str(e), counts=counts)

        return SyncResult(SyncOutcome.OK, local_updated=True, pushed=True, counts=counts)

    def _merge_and_persist(self, remote: Dict[str, Any]) -> Dict[str, int]:
        """Merge each collection present remotely and persist it straight away"""
        counts: Dict[str, int] = {}

        for collection in MERGED_COLLECTIONS:
            rows = remote.get(collection.value)
            if not isinstance(rows, list):
                logger.debug(f"No remote {collection.value}, leaving local copy as is")
                continue
            if collection is Collection.TIMESHEET:
                rows = self._decode_timesheet(rows)

            merged = merge_records(self.store.get_all(collection), rows, collection.key_field)
            self.store.save_merged(collection, merged)
            counts[collection.value] = len(merged)

        settings = remote.get(Collection.SETTINGS.value)
        if isinstance(settings, list):
            settings = [s for s in settings if isinstance(s, dict)]
            if settings:
                # Tax settings are not merged; the last full push wins
                self.store.save_merged(Collection.SETTINGS, settings)
                counts[Collection.SETTINGS.value] = len(settings)

        company = self._merge_company(remote.get(Collection.COMPANY.value))
        if company is not None:
            self.store.save_merged(Collection.COMPANY, [company])
            counts[Collection.COMPANY.value] = 1

        return counts

    def _merge_company(self, remote_company: Any) -> Optional[Dict[str, Any]]:
        if isinstance(remote_company, list):
            remote_company = remote_company[0] if remote_company else None
        if not isinstance(remote_company, dict) or not remote_company:
            return None

        local = self.store.get_company()
        merged = dict(merge_singleton(local, remote_company))

        # The spreadsheet row may not carry the endpoint; never lose ours to it
        local_url = local.get(ENDPOINT_FIELD)
        if not clean_endpoint_url(merged.get(ENDPOINT_FIELD)) and clean_endpoint_url(local_url):
            merged[ENDPOINT_FIELD] = local_url
        return merged

    def _decode_timesheet(self, rows: List[Any]) -> List[Dict[str, Any]]:
        """Turn spreadsheet rows into local timesheet records"""
        decoded = []
        for raw in rows:
            if not isinstance(raw, dict) or not record_key(raw, 'id'):
                continue
            entry = dict(raw)
            day = self.codec.calendar_date(entry.get('date')) or entry.get('date')
            entry['date'] = day
            for field_name in ('timeIn', 'timeOut'):
                value = entry.get(field_name)
                if value is None or str(value).strip() in EMPTY_MARKERS:
                    entry[field_name] = None
                else:
                    entry[field_name] = self.codec.to_instant(day, value) or value
            entry['breakMinutes'] = int(to_number(entry.get('breakMinutes')))
            entry['totalHours'] = float(to_number(entry.get('totalHours')))
            decoded.append(entry)
        return decoded

    def _encode_timesheet(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        encoded = []
        for raw in rows:
            entry = dict(raw)
            entry['timeIn'] = self.codec.to_wall_clock(entry.get('timeIn'))
            entry['timeOut'] = self.codec.to_wall_clock(entry['timeOut']) if entry.get('timeOut') else None
            encoded.append(entry)
        return encoded

    def build_payload(self) -> Dict[str, Any]:
        """Full-state payload in the shape the spreadsheet endpoint expects"""
        return {
            'full_sync': True,
            'data': {
                Collection.EMPLOYEES.value: self.store.get_all(Collection.EMPLOYEES),
                Collection.TIMESHEET.value: self._encode_timesheet(self.store.get_all(Collection.TIMESHEET)),
                Collection.SETTINGS.value: self.store.get_all(Collection.SETTINGS),
                Collection.HOLIDAYS.value: self.store.get_all(Collection.HOLIDAYS),
                Collection.PUBLIC_HOLIDAYS.value: self.store.get_all(Collection.PUBLIC_HOLIDAYS),
                Collection.COMPANY.value: [self.store.get_company()],
            }
        }

    def _push(self, url: str) -> None:
        payload = self.build_payload()
        # The endpoint replaces its state wholesale: another device pushing at
        # the same time overwrites this push (or is overwritten by it).
        logger.warning(f"Pushing full state ({len(payload['data'][Collection.TIMESHEET.value])} timesheet rows); "
                    "remote copy is replaced, concurrent pushes from other devices are last-one-wins")
        self.transport.push_state(url, payload)

    def push_to_cloud(self) -> SyncResult:
        """Push local state without pulling first"""
        logger.info("push_to_cloud called")

        if not self._sync_lock.acquire(blocking=False):
            logger.warning("push_to_cloud: already syncing")
            return SyncResult(SyncOutcome.BUSY, error="A sync cycle is already running")

        try:
            self.is_syncing = True
            url = self.get_endpoint()
            if not url:
                result = SyncResult(SyncOutcome.CONFIG_ERROR, error="Sync endpoint is not configured")
            else:
                try:
                    self._push(url)
                    result = SyncResult(SyncOutcome.OK, pushed=True)
                except TransportError as e:
                    logger.error(f"Push failed: {e}")
                    result = SyncResult(SyncOutcome.PUSH_FAILED, error=str(e))
            self._record_result(result)
            return result

        finally:
            self.is_syncing = False
            self._sync_lock.release()

    def sync_on_startup(self) -> Optional[SyncResult]:
        """Calibrate the revision clock and sync if an endpoint is configured"""
        if isinstance(self.store.clock, RevisionClock):
            self.store.clock.calibrate()

        if not self.is_configured():
            logger.info("No sync endpoint configured, skipping startup sync")
            return None
        return self.pull_merge_push()

    def _record_result(self, result: SyncResult) -> None:
        self.last_outcome = result.outcome
        if result:
            self.last_sync = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
            self.last_error = None
            self.store.set_setting('last_full_sync', self.last_sync)
        else:
            self.last_error = result.error

    def _resolve_instant(self, at: Instant) -> str:
        if at is None:
            return format_instant(datetime.now(timezone.utc))
        if isinstance(at, datetime):
            return format_instant(at)
        parsed = parse_instant(at)
        if parsed is None:
            raise ValueError(f"Not an ISO-8601 instant: {at!r}")
        return format_instant(parsed)

    def clock_in(self, employee_ids: List[str], at: Instant = None) -> List[str]:
        """Open a timesheet entry for each employee. Does not sync."""
        instant = self._resolve_instant(at)
        names = {
            record_key(e, 'employeeId'): e.get('nameAndSurname')
            for e in self.store.get_all(Collection.EMPLOYEES)
        }

        created = []
        for employee_id in employee_ids:
            entry = TimesheetEntry(
                employeeId=employee_id,
                employeeName=names.get(str(employee_id)) or 'Unknown',
                date=self.codec.date_of(instant),
                timeIn=instant,
            )
            self.store.upsert(Collection.TIMESHEET, entry.to_dict())
            created.append(entry.id)

        logger.info(f"Clocked in {len(created)} employee(s) at {instant}")
        return created

    def clock_out(self, entry_id: str, at: Instant = None, break_minutes: int = 0) -> Optional[Dict[str, Any]]:
        """Close a timesheet entry and compute its payable hours. No-op for unknown ids."""
        entry = self.store.get(Collection.TIMESHEET, entry_id)
        if entry is None:
            logger.warning(f"clock_out: no timesheet entry {entry_id}")
            return None

        instant = self._resolve_instant(at)
        time_in = parse_instant(entry.get('timeIn'))
        if time_in is None:
            logger.warning(f"clock_out: entry {entry_id} has unreadable timeIn {entry.get('timeIn')!r}")
            total_hours = 0.0
        else:
            net_ms = (parse_instant(instant) - time_in).total_seconds() * 1000 - break_minutes * 60 * 1000
            total_hours = max(0.0, round(net_ms / (1000 * 60 * 60), 2))

        entry.update({
            'timeOut': instant,
            'breakMinutes': break_minutes,
            'totalHours': total_hours,
        })
        return self.store.upsert(Collection.TIMESHEET, entry)

    def get_active_entries(self) -> List[Dict[str, Any]]:
        """Timesheet entries that are still open"""
        return [e for e in self.store.get_all(Collection.TIMESHEET) if e.get('timeOut') is None]

    def get_sync_status(self) -> SyncStatus:
        return SyncStatus(
            is_syncing=self.is_syncing,
            last_sync=self.last_sync or self.get_last_full_sync(),
            last_error=self.last_error,
            last_outcome=self.last_outcome.value if self.last_outcome else None,
            endpoint=self.get_endpoint(),
            open_entries=len(self.get_active_entries()),
        )

    def get_last_full_sync(self) -> Optional[str]:
        """Get the timestamp of the last completed sync cycle"""
        return self.store.get_setting('last_full_sync', None)


_sync_service = None


def get_sync_service() -> SyncService:
    """Get the global sync service instance"""
    global _sync_service
    if _sync_service is None:
        _sync_service = SyncService()
    return _sync_service
