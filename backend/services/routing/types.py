"""Value types shared by the routing and matching services."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Sequence, Tuple

import polyline as polyline_codec


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 coordinate. Raises ValueError when out of range."""
    latitude: float
    longitude: float

    def __post_init__(self):
        try:
            latitude = float(self.latitude)
            longitude = float(self.longitude)
        except (TypeError, ValueError):
            raise ValueError(
                f"Coordinates must be numeric, got ({self.latitude!r}, {self.longitude!r})"
            ) from None

        if not -90 <= latitude <= 90:
            raise ValueError(f"Latitude {latitude} out of range [-90, 90]")
        if not -180 <= longitude <= 180:
            raise ValueError(f"Longitude {longitude} out of range [-180, 180]")

        object.__setattr__(self, "latitude", latitude)
        object.__setattr__(self, "longitude", longitude)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeoPoint":
        return cls(data["latitude"], data["longitude"])

    def as_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class RouteLeg:
    distance_km: float
    duration_min: float
    start: GeoPoint
    end: GeoPoint
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "distance": round(self.distance_km, 3),
            "duration": round(self.duration_min, 1),
            "startLocation": self.start.to_dict(),
            "endLocation": self.end.to_dict(),
        }
        if self.label:
            data["label"] = self.label
        return data


@dataclass(frozen=True)
class RouteGeometry:
    """
    A driving route as returned by a RouteSource.

    ``polyline`` holds the decoded overview path, ``legs`` one entry per
    consecutive pair of requested stops.
    """
    distance_km: float
    duration_min: float
    polyline: Tuple[GeoPoint, ...]
    legs: Tuple[RouteLeg, ...] = ()

    def with_leg_labels(self, labels: Sequence[str]) -> "RouteGeometry":
        """Copy of this route with ``labels`` attached to its legs, in order."""
        legs = tuple(
            replace(leg, label=labels[index]) if index < len(labels) else leg
            for index, leg in enumerate(self.legs)
        )
        return replace(self, legs=legs)

    def summary(self) -> Dict[str, float]:
        return {
            "distance": round(self.distance_km, 3),
            "duration": round(self.duration_min, 1),
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.summary()
        data["polyline"] = polyline_codec.encode([point.as_tuple() for point in self.polyline])
        data["legs"] = [leg.to_dict() for leg in self.legs]
        return data
