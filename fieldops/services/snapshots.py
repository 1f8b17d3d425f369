"""
Immutable views of the entities a workflow reads once and carries across
requests. ORM instances are bound to a request's session, these are not.
"""
from dataclasses import dataclass
from typing import Optional

from fieldops.services.geofence import Coordinates


@dataclass(frozen=True)
class GuardRef:
    id: int
    full_name: str

    @classmethod
    def from_model(cls, guard) -> "GuardRef":
        return cls(id=guard.id, full_name=guard.full_name)


@dataclass(frozen=True)
class PostRef:
    id: int
    name: str
    coordinates: Optional[Coordinates]

    @classmethod
    def from_model(cls, post) -> "PostRef":
        coordinates = None
        if post.latitude is not None and post.longitude is not None:
            coordinates = Coordinates(latitude=post.latitude, longitude=post.longitude)
        return cls(id=post.id, name=post.name, coordinates=coordinates)


@dataclass(frozen=True)
class WeaponRef:
    """The weapon as it was when the handover started: ammo_count is the expected baseline."""
    id: int
    serial_number: str
    ammo_count: int
    version: int

    @classmethod
    def from_model(cls, weapon) -> "WeaponRef":
        return cls(
            id=weapon.id,
            serial_number=weapon.serial_number,
            ammo_count=weapon.ammo_count,
            version=weapon.version,
        )
