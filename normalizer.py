# normalizer.py
# Turns the raw telemetry payload into a fully typed Snapshot.
#
# Payload shape:
#   {"sensores": {"humedad", "temperatura", "lluvia", "sol"},
#    "parcelas": [{"id", "nombre", "ubicacion", "responsable", "tipo_cultivo",
#                  "ultimo_riego", "latitud", "longitud",
#                  "sensor": {"humedad", "temperatura", "lluvia", "sol"}}]}
import datetime
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import List

from errors import NormalizationError

logger = logging.getLogger(__name__)

# SQL INTEGER range
MIN_ID = -(2 ** 63)
MAX_ID = 2 ** 63 - 1

SENSOR_KEYS = {
    "humidity": "humedad",
    "temperature": "temperatura",
    "rainfall": "lluvia",
    "sunlight": "sol",
}


@dataclass(frozen=True)
class SensorValues:
    humidity: float = 0.0
    temperature: float = 0.0
    rainfall: float = 0.0
    sunlight: float = 0.0


@dataclass(frozen=True)
class PlotRecord:
    id: int
    name: str
    location: str
    responsible_party: str
    crop_type: str
    last_irrigated: datetime.date
    latitude: float
    longitude: float
    sensor: SensorValues


@dataclass
class Snapshot:
    global_reading: SensorValues
    plots: List[PlotRecord] = field(default_factory=list)
    skipped: int = 0

    @property
    def plot_ids(self):
        return {p.id for p in self.plots}


def to_number(value):
    """Coerce to float; anything missing, non-numeric or non-finite is 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def to_id(value):
    """Canonical integer id, or None when the value cannot be one."""
    plot_id = _to_int(value)
    if plot_id is None or not MIN_ID <= plot_id <= MAX_ID:
        return None
    return plot_id


def _to_int(value):
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            return int(value)
        except ValueError:
            pass
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return int(number)


def to_text(value):
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def to_date(value, today=None):
    today = today or datetime.date.today()
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return datetime.date.fromisoformat(text[:10])
        except ValueError:
            logger.debug("Unparsable ultimo_riego %r, using today", value)
    return today


def normalize_sensor(raw):
    if not isinstance(raw, Mapping):
        return SensorValues()
    return SensorValues(**{attr: to_number(raw.get(key)) for attr, key in SENSOR_KEYS.items()})


def normalize_plot(raw, today=None):
    """Return a PlotRecord, or None when the entry has no usable id."""
    if not isinstance(raw, Mapping):
        logger.warning("Skipping plot entry that is not an object: %r", raw)
        return None
    plot_id = to_id(raw.get("id"))
    if plot_id is None:
        logger.warning("Skipping plot entry without a valid id: %r", raw.get("id"))
        return None
    return PlotRecord(
        id=plot_id,
        name=to_text(raw.get("nombre")) or "Parcela %d" % plot_id,
        location=to_text(raw.get("ubicacion")),
        responsible_party=to_text(raw.get("responsable")),
        crop_type=to_text(raw.get("tipo_cultivo")),
        last_irrigated=to_date(raw.get("ultimo_riego"), today),
        latitude=to_number(raw.get("latitud")),
        longitude=to_number(raw.get("longitud")),
        sensor=normalize_sensor(raw.get("sensor")),
    )


def normalize(raw_payload, today=None):
    if not isinstance(raw_payload, Mapping):
        raise NormalizationError("Telemetry payload is not a JSON object")
    raw_plots = raw_payload.get("parcelas")
    if not isinstance(raw_plots, list):
        raise NormalizationError("Telemetry payload has no 'parcelas' list")

    snapshot = Snapshot(global_reading=normalize_sensor(raw_payload.get("sensores")))
    seen = set()
    for raw in raw_plots:
        record = normalize_plot(raw, today)
        if record is None:
            snapshot.skipped += 1
            continue
        if record.id in seen:
            logger.warning("Duplicate plot id %d in payload, keeping the first one", record.id)
            snapshot.skipped += 1
            continue
        seen.add(record.id)
        snapshot.plots.append(record)

    if snapshot.skipped:
        logger.warning("Skipped %d of %d plot entries", snapshot.skipped, len(raw_plots))
    return snapshot
