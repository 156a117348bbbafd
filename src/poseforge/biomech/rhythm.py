"""Rhythm coupling between linked joint pairs.

Above a threshold, elevation measured at the distal joint is shared with the
proximal joint at a fixed ratio.  The classic case is scapulohumeral rhythm:
past 30° of arm elevation the scapula supplies roughly one degree of upward
rotation for every two degrees at the glenohumeral joint.

Both coordinates are summed in display space, so a coupled pair must turn
about the same axis with the same ``invert`` flag; otherwise a positive
value means opposite rotations at the two joints.  ``problems()`` rejects
pairs that do not.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from poseforge.constants import RHYTHM_CONFIG, RHYTHM_RATIO, RHYTHM_THRESHOLD_DEG
from poseforge.core.config_loader import expand_bilateral, fill_side, load_biomech_config
from poseforge.core.math_utils import clamp, deg_to_rad
from poseforge.biomech.types import BiomechModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RhythmSplit:
    """How a total elevation is divided between the two joints (radians)."""
    total: float
    proximal: float
    distal: float


@dataclass(frozen=True)
class RhythmCoupling:
    name: str
    proximal_joint: str
    proximal_coordinate: str
    distal_joint: str
    distal_coordinate: str
    threshold: float = deg_to_rad(RHYTHM_THRESHOLD_DEG)
    ratio: float = RHYTHM_RATIO  # distal : proximal above the threshold

    def __post_init__(self):
        if self.threshold < 0:
            raise ValueError(f"Coupling {self.name!r}: threshold must be >= 0")
        if self.ratio < 0:
            raise ValueError(f"Coupling {self.name!r}: ratio must be >= 0")

    def split(self, total: float, proximal_range: Optional[tuple[float, float]] = None) -> RhythmSplit:
        """Divide *total* elevation.

        At or below the threshold everything stays distal.  Above it the
        excess is shared ``ratio : 1``, e.g. 90° at a 30° threshold and 2:1
        gives 20° proximal and 70° distal.
        """
        if total <= self.threshold:
            proximal = 0.0
        else:
            proximal = (total - self.threshold) / (self.ratio + 1.0)
        if proximal_range is not None:
            proximal = clamp(proximal, *proximal_range)
        return RhythmSplit(total=total, proximal=proximal, distal=total - proximal)

    def problems(self, model: BiomechModel) -> list[str]:
        """Reasons this coupling cannot run against *model* (empty if fine)."""
        problems = []
        coords = []
        for joint_id, coord_id in (
            (self.proximal_joint, self.proximal_coordinate),
            (self.distal_joint, self.distal_coordinate),
        ):
            joint = model.joint(joint_id)
            if joint is None:
                problems.append(f"unknown joint {joint_id!r}")
            elif joint.coordinate(coord_id) is None:
                problems.append(f"joint {joint_id!r} has no coordinate {coord_id!r}")
            else:
                coords.append(joint.coordinate(coord_id))
        if self.proximal_joint == self.distal_joint:
            problems.append("proximal and distal joint are the same")
        if len(coords) == 2:
            prox, dist = coords
            if prox.axis is not dist.axis:
                problems.append(
                    f"{prox.id!r} turns about {prox.axis.value} but {dist.id!r} about {dist.axis.value}"
                )
            if prox.invert != dist.invert:
                problems.append(f"{prox.id!r} and {dist.id!r} use opposite sign conventions")
        return problems


def default_couplings() -> list[RhythmCoupling]:
    """Scapulohumeral rhythm on both sides."""
    couplings = []
    for side in ("right", "left"):
        s = side[0]
        couplings.append(RhythmCoupling(
            name=f"scapulohumeral_{side}",
            proximal_joint=f"st_{side}",
            proximal_coordinate=f"st_{s}_upward",
            distal_joint=f"gh_{side}",
            distal_coordinate=f"gh_{s}_abduction",
        ))
    return couplings


_STRING_FIELDS = ("proximal_joint", "proximal_coordinate", "distal_joint", "distal_coordinate")


def _couplings_from_entry(entry: dict) -> list[RhythmCoupling]:
    couplings = []
    for side, name in expand_bilateral(entry["name"]):
        fields_ = {k: fill_side(entry[k], side) for k in _STRING_FIELDS}
        couplings.append(RhythmCoupling(
            name=name,
            threshold=deg_to_rad(float(entry.get("threshold_deg", RHYTHM_THRESHOLD_DEG))),
            ratio=float(entry.get("ratio", RHYTHM_RATIO)),
            **fields_,
        ))
    return couplings


def load_couplings() -> list[RhythmCoupling]:
    """Coupling table from config, falling back to the built-in defaults."""
    try:
        data = load_biomech_config(RHYTHM_CONFIG)
    except (FileNotFoundError, ValueError) as e:
        logger.warning("Rhythm coupling config not found, using defaults: %s", e)
        return default_couplings()

    couplings = []
    for entry in data.get("couplings", []):
        try:
            couplings.extend(_couplings_from_entry(entry))
        except (KeyError, ValueError) as e:
            logger.warning("Skipping malformed rhythm coupling %s: %s", entry.get("name"), e)
    return couplings
