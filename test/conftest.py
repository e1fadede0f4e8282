"""Shared fixtures and synthetic data factories for the viewer tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pytest

from utils.geometry import Isometry
from utils.structures import BBox2D, BBox3D, KittiObject


# ---------------------------------------------------------------------------
# Synthetic data factories
# ---------------------------------------------------------------------------

# Velodyne -> camera axes swap used by the KITTI rigs: x_cam = -y_velo,
# y_cam = -z_velo, z_cam = x_velo.
VELO_TO_CAM_ROT = [0, -1, 0, 0, 0, -1, 1, 0, 0]

CALIB_TEXT = "\n".join(
    [
        "P0: 700 0 600 0 0 700 180 0 0 0 1 0",
        "P1: 700 0 600 -380 0 700 180 0 0 0 1 0",
        "R0_rect: 1 0 0 0 1 0 0 0 1",
        "Tr_velo_to_cam: " + " ".join(
            str(v) for v in [VELO_TO_CAM_ROT[0], VELO_TO_CAM_ROT[1], VELO_TO_CAM_ROT[2], 0.0,
                             VELO_TO_CAM_ROT[3], VELO_TO_CAM_ROT[4], VELO_TO_CAM_ROT[5], 0.0,
                             VELO_TO_CAM_ROT[6], VELO_TO_CAM_ROT[7], VELO_TO_CAM_ROT[8], 0.0]
        ),
        "Tr_imu_to_velo: 1 0 0 0 0 1 0 0 0 0 1 0",
    ]
)

CAR_LINE = "Car 0 0 0 10 20 110 220 1.5 1.6 3.8 5 1.7 30 1.57"
# Geometric centre of CAR_LINE in the velodyne frame with CALIB_TEXT:
# rect (5, 1.7 - 0.75, 30) -> velo (30, -5, -0.95)
CAR_CENTER_VELO = (30.0, -5.0, -0.95)


def make_points(rows: Sequence[Sequence[float]]) -> bytes:
    """Encode (x, y, z, intensity) rows as a velodyne .bin payload."""
    return np.asarray(rows, dtype="<f4").reshape(-1, 4).tobytes()


def make_object(
    extents: Sequence[float] = (2.0, 2.0, 2.0),
    center: Sequence[float] = (0.0, 0.0, 0.0),
    yaw: float = 0.0,
    class_name: str = "Car",
    object_key: Optional[str] = None,
) -> KittiObject:
    """KittiObject with a yaw-only pose."""
    return KittiObject(
        class_name=class_name,
        bbox3d=BBox3D(extents=extents, pose=Isometry.from_euler(center, 0.0, 0.0, yaw)),
        bbox2d=BBox2D.zero(),
        object_key=object_key,
    )


def make_supervisely_document(
    figures: List[Dict], objects: List[Dict]
) -> Dict:
    return {"description": "", "key": "doc", "tags": [], "objects": objects, "figures": figures}


def make_figure(
    object_key: str,
    position=(0.0, 0.0, 0.0),
    rotation=(0.0, 0.0, 0.0),
    dimensions=(4.0, 2.0, 1.5),
) -> Dict:
    def vec(v):
        return {"x": v[0], "y": v[1], "z": v[2]}

    return {
        "key": f"fig-{object_key}",
        "objectKey": object_key,
        "geometryType": "cuboid_3d",
        "geometry": {"position": vec(position), "rotation": vec(rotation), "dimensions": vec(dimensions)},
    }


def write_frame(
    root: Path,
    index: int,
    label_lines: Sequence[str],
    points: Sequence[Sequence[float]],
    calib_text: str = CALIB_TEXT,
) -> None:
    """Write label_2/calib/velodyne files for one frame."""
    name = f"{index:06d}"
    for sub in ("label_2", "calib", "velodyne"):
        (root / sub).mkdir(parents=True, exist_ok=True)
    (root / "label_2" / f"{name}.txt").write_text("\n".join(label_lines) + "\n")
    (root / "calib" / f"{name}.txt").write_text(calib_text + "\n")
    (root / "velodyne" / f"{name}.bin").write_bytes(make_points(points))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

FRAME_POINTS = [
    [30.0, -5.0, -0.95, 10.0],  # centre of the car
    [30.5, -5.2, -0.5, 20.0],  # inside the car
    [0.0, 0.0, 0.0, 30.0],  # near the sensor
    [10.0, 10.0, 0.0, 40.0],  # far from everything
]


@pytest.fixture
def kitti_dir(tmp_path: Path) -> Path:
    """A KITTI-layout directory with frames 0, 1 and 3."""
    root = tmp_path / "kitti"
    write_frame(root, 0, [CAR_LINE, "DontCare -1 -1 -10 0 0 10 10 -1 -1 -1 -1000 -1000 -1000 -10"], FRAME_POINTS)
    write_frame(root, 1, [CAR_LINE + " 0.75"], FRAME_POINTS[:2])
    write_frame(root, 3, [], FRAME_POINTS)
    return root


@pytest.fixture
def supervisely_dir(tmp_path: Path) -> Path:
    """External annotation directory with frames 0 and 2."""
    root = tmp_path / "supervisely"
    root.mkdir()
    doc = make_supervisely_document(
        figures=[make_figure("obj-a", position=(10.0, 0.0, 0.0))],
        objects=[{"key": "obj-a", "classTitle": "Pedestrian", "tags": [{"name": "Confidence", "value": "0.5"}]}],
    )
    for index in (0, 2):
        (root / f"{index:06d}.pcd.json").write_text(json.dumps(doc))
    return root
