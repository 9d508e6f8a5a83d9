# reconciler.py
# Merges a telemetry snapshot into the database:
#   1. global readings history (change-gated, or every pass)
#   2. plot upsert + per-plot readings history (change-gated)
#   3. soft-delete plots the snapshot no longer reports
import logging
import threading
from dataclasses import asdict, dataclass

from normalizer import SensorValues, normalize

logger = logging.getLogger(__name__)

POLICY_ON_CHANGE = "on_change"
POLICY_ALWAYS = "always"
GLOBAL_POLICIES = (POLICY_ON_CHANGE, POLICY_ALWAYS)

SENSOR_FIELDS = ("humidity", "temperature", "rainfall", "sunlight")


@dataclass
class ReconcileResult:
    global_reading_inserted: bool = False
    plots_inserted: int = 0
    plots_updated: int = 0
    plot_readings_inserted: int = 0
    plots_deleted: int = 0
    skipped_records: int = 0

    def to_dict(self):
        return asdict(self)


def readings_differ(last, current):
    """True when there is no previous row or any sensor field changed."""
    if last is None:
        return True
    return any(float(getattr(last, f)) != float(getattr(current, f)) for f in SENSOR_FIELDS)


class Reconciler:
    def __init__(self, store, fetch=None, global_policy=POLICY_ON_CHANGE, degraded_fallback=True):
        if global_policy not in GLOBAL_POLICIES:
            raise ValueError("global_policy must be one of %s, got %r" % (GLOBAL_POLICIES, global_policy))
        self.store = store
        self.fetch = fetch
        self.global_policy = global_policy
        self.degraded_fallback = degraded_fallback
        # one pass at a time
        self._lock = threading.Lock()

    def run(self, fetch=None):
        """Fetch, normalize and reconcile one snapshot."""
        fetch = fetch or self.fetch
        if fetch is None:
            raise ValueError("No telemetry fetcher configured")
        with self._lock:
            try:
                snapshot = normalize(fetch())
                result = self._apply(snapshot)
                self.store.commit()
            except Exception as e:
                self._abort(e)
                raise
        self._log_result(result)
        return result

    def reconcile(self, snapshot):
        """Reconcile an already normalized snapshot."""
        with self._lock:
            try:
                result = self._apply(snapshot)
                self.store.commit()
            except Exception as e:
                self._abort(e)
                raise
        self._log_result(result)
        return result

    def write_degraded_reading(self):
        """Degraded mode: record an all-zero global reading.

        Best effort. Returns True when the row was committed.
        """
        try:
            self.store.insert_global_reading(SensorValues())
            self.store.commit()
        except Exception:
            logger.exception("Degraded global reading could not be written")
            self._rollback()
            return False
        logger.warning("Wrote degraded all-zero global reading")
        return True

    # ----------------------
    # Steps
    # ----------------------
    def _apply(self, snapshot):
        result = ReconcileResult(skipped_records=snapshot.skipped)
        result.global_reading_inserted = self._record_global(snapshot.global_reading)
        for record in snapshot.plots:
            self._upsert_plot(record, result)
        # must run after every upsert of this pass
        result.plots_deleted = self._sweep_deleted(snapshot.plot_ids)
        return result

    def _record_global(self, reading):
        if self.global_policy == POLICY_ON_CHANGE:
            if not readings_differ(self.store.latest_global_reading(), reading):
                return False
        self.store.insert_global_reading(reading)
        return True

    def _upsert_plot(self, record, result):
        if self.store.find_plot(record.id) is None:
            self.store.insert_plot(record)
            result.plots_inserted += 1
        else:
            self.store.update_plot(record)
            result.plots_updated += 1

        if readings_differ(self.store.latest_plot_reading(record.id), record.sensor):
            self.store.insert_plot_reading(record.id, record.sensor)
            result.plot_readings_inserted += 1

    def _sweep_deleted(self, reported_ids):
        missing = sorted(self.store.active_plot_ids() - set(reported_ids))
        for plot_id in missing:
            self.store.mark_plot_deleted(plot_id)
        if missing:
            logger.info("Soft-deleted plots no longer reported: %s", missing)
        return len(missing)

    def _abort(self, error):
        logger.error("Reconciliation pass failed: %s", error)
        self._rollback()
        if self.degraded_fallback:
            self.write_degraded_reading()

    def _rollback(self):
        try:
            self.store.rollback()
        except Exception:
            logger.exception("Rollback failed")

    def _log_result(self, result):
        logger.info(
            "Reconciliation done: global=%s inserted=%d updated=%d readings=%d deleted=%d skipped=%d",
            result.global_reading_inserted,
            result.plots_inserted,
            result.plots_updated,
            result.plot_readings_inserted,
            result.plots_deleted,
            result.skipped_records,
        )
