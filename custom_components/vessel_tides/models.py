"""
Typed data model for Vessel Tides.

Pure data module with no HA or network dependencies. Every type is a frozen
dataclass: replace via dataclasses.replace(), never mutate in place.
Persisted types expose as_dict()/from_dict() producing JSON-safe payloads
(ISO-8601 "Z" timestamps, plain floats).
"""
from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple


class ExtremeType(str, Enum):
    HIGH = "High"
    LOW = "Low"


class Datum(str, Enum):
    """Vertical reference plane of a height value."""

    MSL = "MSL"
    MLLW = "MLLW"


class DataSource(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    # previously held forecast still served after a failed cycle
    CACHED = "cached"


# ----
# Timestamp helpers
# ----
def parse_time(value: Any) -> datetime:
    """
    Accepts: aware/naive datetime, ISO string (with or without trailing Z), epoch seconds.
    Returns: aware UTC datetime. Naive inputs are taken as UTC.
    Raises ValueError on unrecognized input.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    elif isinstance(value, str):
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError as exc:
            raise ValueError(f"Unrecognized timestamp string: {value!r}") from exc
    else:
        raise ValueError(f"Unsupported timestamp type: {type(value)}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso_z(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


# ----
# Geography / stations
# ----
@dataclasses.dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        """Build from {latitude, longitude} (or the short lat/lon/lng spellings)."""
        lat = data.get("latitude", data.get("lat"))
        lon = data.get("longitude", data.get("lon", data.get("lng")))
        if lat is None or lon is None:
            raise ValueError(f"Position payload missing latitude/longitude: {data!r}")
        return cls(float(lat), float(lon))

    def as_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclasses.dataclass(frozen=True)
class StationInfo:
    """A forecast station; the engine's PreferredStation uses the same shape."""

    name: str
    position: Position

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StationInfo":
        return cls(name=str(data["name"]), position=Position.from_dict(data["position"]))

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "position": self.position.as_dict()}


# ----
# Forecasts
# ----
@dataclasses.dataclass(frozen=True)
class TideExtreme:
    time: datetime
    value: float
    type: ExtremeType

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TideExtreme":
        return cls(
            time=parse_time(data["time"]),
            value=float(data["value"]),
            type=ExtremeType(data["type"]),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {"time": iso_z(self.time), "value": self.value, "type": self.type.value}


@dataclasses.dataclass(frozen=True)
class DatumInfo:
    """
    Datum tag carried by a forecast.

    offset is the MLLW -> MSL offset in meters (MLLW + offset = MSL), or None
    when the provider did not supply one.
    """

    source: Datum
    offset: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"source": self.source.value, "offset": self.offset}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatumInfo":
        offset = data.get("offset")
        return cls(source=Datum(data["source"]), offset=None if offset is None else float(offset))


@dataclasses.dataclass(frozen=True)
class Forecast:
    """Immutable provider result; extremes are kept time-ascending."""

    station: StationInfo
    extremes: Tuple[TideExtreme, ...]
    datum: Optional[DatumInfo] = None

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.extremes, key=lambda e: e.time))
        object.__setattr__(self, "extremes", ordered)

    def with_extremes(self, extremes: Iterable[TideExtreme], datum: Optional[DatumInfo]) -> "Forecast":
        return dataclasses.replace(self, extremes=tuple(extremes), datum=datum)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Forecast":
        datum = data.get("datum")
        return cls(
            station=StationInfo.from_dict(data["station"]),
            extremes=tuple(TideExtreme.from_dict(e) for e in data.get("extremes", [])),
            datum=DatumInfo.from_dict(datum) if datum else None,
        )

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "station": self.station.as_dict(),
            "extremes": [e.as_dict() for e in self.extremes],
        }
        if self.datum is not None:
            out["datum"] = self.datum.as_dict()
        return out


# ----
# Harmonics
# ----
@dataclasses.dataclass(frozen=True)
class HarmonicConstituent:
    name: str
    amplitude: float  # meters
    phase: float  # Greenwich phase lag, degrees

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "amplitude": self.amplitude, "phase": self.phase}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HarmonicConstituent":
        return cls(str(data["name"]), float(data["amplitude"]), float(data["phase"]))


@dataclasses.dataclass(frozen=True)
class HarmonicStation:
    id: str
    name: str
    position: Position
    timezone: str
    country: str
    datum_offset: float  # MSL - MLLW, meters
    constituents: Tuple[HarmonicConstituent, ...]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "lat": self.position.latitude,
            "lon": self.position.longitude,
            "timezone": self.timezone,
            "country": self.country,
            "offset": self.datum_offset,
            "constituents": [c.as_dict() for c in self.constituents],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HarmonicStation":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            position=Position(float(data["lat"]), float(data["lon"])),
            timezone=str(data.get("timezone") or "UTC"),
            country=str(data.get("country") or "Unknown"),
            datum_offset=float(data.get("offset") or 0.0),
            constituents=tuple(HarmonicConstituent.from_dict(c) for c in data.get("constituents", [])),
        )


@dataclasses.dataclass(frozen=True)
class HarmonicsDatabase:
    """Unit of persistence and atomic replacement for the offline model."""

    version: str
    center: Position
    radius_nm: float
    stations: Tuple[HarmonicStation, ...]
    extracted_at: datetime
    info: str = ""
    source: str = ""
    url: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "info": self.info,
            "source": self.source,
            "url": self.url,
            "extracted": iso_z(self.extracted_at),
            "center": self.center.as_dict(),
            "radiusNM": self.radius_nm,
            "stations": [s.as_dict() for s in self.stations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HarmonicsDatabase":
        return cls(
            version=str(data["version"]),
            info=str(data.get("info", "")),
            source=str(data.get("source", "")),
            url=str(data.get("url", "")),
            extracted_at=parse_time(data["extracted"]),
            center=Position.from_dict(data["center"]),
            radius_nm=float(data["radiusNM"]),
            stations=tuple(HarmonicStation.from_dict(s) for s in data.get("stations", [])),
        )


@dataclasses.dataclass(frozen=True)
class CacheMetadata:
    """Small sidecar summarizing the database for cheap staleness checks."""

    last_update: datetime
    center: Position
    radius_nm: float
    station_count: int
    source_version: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "lastUpdate": iso_z(self.last_update),
            "center": self.center.as_dict(),
            "radiusNM": self.radius_nm,
            "stationCount": self.station_count,
            "sourceVersion": self.source_version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheMetadata":
        return cls(
            last_update=parse_time(data["lastUpdate"]),
            center=Position.from_dict(data["center"]),
            radius_nm=float(data["radiusNM"]),
            station_count=int(data["stationCount"]),
            source_version=str(data.get("sourceVersion", "unknown")),
        )


# ----
# Engine state
# ----
@dataclasses.dataclass(frozen=True)
class HeldForecastState:
    """
    Orchestrator working memory. Created empty, replaced once per cycle,
    read-only to the emitter and entities. Never persisted.

    Equality ignores the fetch timestamp and status text, so a cycle that
    returns the same forecast from the same source compares equal.
    """

    forecast: Optional[Forecast] = None
    preferred_station: Optional[StationInfo] = None
    last_successful_fetch: Optional[datetime] = dataclasses.field(default=None, compare=False)
    data_source: Optional[DataSource] = None
    offline_warning: bool = False
    status: str = dataclasses.field(default="", compare=False)


@dataclasses.dataclass(frozen=True)
class TideFingerprint:
    station_name: str
    next_low_time: Optional[datetime]
    next_high_time: Optional[datetime]


@dataclasses.dataclass(frozen=True)
class TideState:
    """Snapshot published to entities by the emitter."""

    timestamp: datetime
    station_name: str
    height_now: Optional[float]
    next_high: Optional[TideExtreme]
    next_low: Optional[TideExtreme]

    @property
    def fingerprint(self) -> TideFingerprint:
        return TideFingerprint(
            station_name=self.station_name,
            next_low_time=self.next_low.time if self.next_low else None,
            next_high_time=self.next_high.time if self.next_high else None,
        )

    def as_dict(self) -> Dict[str, Any]:
        """Flat key/value pairs as published per cycle."""
        out: Dict[str, Any] = {
            "timestamp": iso_z(self.timestamp),
            "station_name": self.station_name,
            "height_now": self.height_now,
        }
        for extreme in (self.next_high, self.next_low):
            if extreme is None:
                continue
            out[f"height_{extreme.type.value.lower()}"] = extreme.value
            out[f"time_{extreme.type.value.lower()}"] = iso_z(extreme.time)
        return out
