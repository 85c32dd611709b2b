"""Zone membership evaluation against circular geofences.

Pure evaluation with no I/O. The tracker only remembers which site the
previous evaluation ended in, so repeated evaluations of an unchanged
position are silent.

When geofences overlap, the position belongs to the containing site
with the smallest center distance; exact ties go to the site listed
first.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple, Union

from geoattend.models import Coordinate, GeofenceSite


@dataclass(frozen=True)
class ZoneEntered:
    site: GeofenceSite


@dataclass(frozen=True)
class ZoneExited:
    site: GeofenceSite


ZoneTransition = Union[ZoneEntered, ZoneExited]


@dataclass
class ZoneEvaluation:
    position: Coordinate
    site: Optional[GeofenceSite] = None
    distance_km: Optional[float] = None
    transitions: List[ZoneTransition] = field(default_factory=list)
    evaluated_at: Optional[datetime] = None

    @property
    def inside(self) -> bool:
        return self.site is not None

    def to_dict(self):
        return {
            "position": self.position.to_dict(),
            "inside": self.inside,
            "site_id": self.site.id if self.site else None,
            "site_name": self.site.name if self.site else None,
            "distance_km": self.distance_km,
            "transitions": [
                {
                    "type": "entered" if isinstance(t, ZoneEntered) else "exited",
                    "site_id": t.site.id,
                    "site_name": t.site.name,
                }
                for t in self.transitions
            ],
            "evaluated_at": self.evaluated_at.isoformat() if self.evaluated_at else None,
        }


def find_containing_site(
    position: Coordinate, sites: Sequence[GeofenceSite]
) -> Tuple[Optional[GeofenceSite], Optional[float]]:
    """Nearest site containing the position, with its distance to the center"""
    best_site = None
    best_distance = None
    for site in sites or ():
        if not site.contains(position):
            continue
        distance = site.distance_to(position)
        # Strict comparison keeps the earlier site on ties
        if best_distance is None or distance < best_distance:
            best_site, best_distance = site, distance
    return best_site, best_distance


class ZoneMembershipTracker:
    """Tracks the current site for one position stream and reports crossings"""

    def __init__(self):
        self.current_site: Optional[GeofenceSite] = None
        self.last_evaluated_at: Optional[datetime] = None

    @property
    def current_site_id(self) -> Optional[str]:
        return self.current_site.id if self.current_site else None

    def evaluate(
        self,
        position: Coordinate,
        sites: Sequence[GeofenceSite],
        now: Optional[datetime] = None,
    ) -> ZoneEvaluation:
        site, distance = find_containing_site(position, sites)
        previous = self.current_site
        transitions: List[ZoneTransition] = []

        if previous is not None and (site is None or site.id != previous.id):
            # Prefer the current definition of the previous site if it still exists
            refreshed = next((s for s in sites or () if s.id == previous.id), None)
            if refreshed is None or not refreshed.contains(position):
                transitions.append(ZoneExited(refreshed or previous))

        if site is not None and (previous is None or site.id != previous.id):
            transitions.append(ZoneEntered(site))

        self.current_site = site
        self.last_evaluated_at = now or datetime.now(timezone.utc)

        return ZoneEvaluation(
            position=position,
            site=site,
            distance_km=distance,
            transitions=transitions,
            evaluated_at=self.last_evaluated_at,
        )

    def reset(self) -> None:
        self.current_site = None
        self.last_evaluated_at = None
