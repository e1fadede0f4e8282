"""数据结构模块

使用dataclasses定义项目中使用的核心数据结构，以增强类型安全和代码清晰度。
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .geometry import BOX_EDGES, Isometry


@dataclass(frozen=True)
class BBox2D:
    """图像上的2D边界框，以 (top, left, height, width) 存储"""

    t: float
    l: float  # noqa: E741
    h: float
    w: float

    @classmethod
    def from_tlbr(cls, tlbr: Sequence[float]) -> "BBox2D":
        t, l, b, r = tlbr  # noqa: E741
        return cls(t=t, l=l, h=b - t, w=r - l)

    @classmethod
    def from_tlhw(cls, tlhw: Sequence[float]) -> "BBox2D":
        t, l, h, w = tlhw  # noqa: E741
        return cls(t=t, l=l, h=h, w=w)

    @classmethod
    def zero(cls) -> "BBox2D":
        return cls.from_tlbr([0.0, 0.0, 0.0, 0.0])

    def tlhw(self) -> List[float]:
        return [self.t, self.l, self.h, self.w]

    def tlbr(self) -> List[float]:
        return [self.t, self.l, self.t + self.h, self.l + self.w]


@dataclass(frozen=True, eq=False)
class BBox3D:
    """有向3D边界框

    extents 为框在局部坐标系下三条边的边长，pose 描述局部坐标系到
    传感器(velodyne)坐标系的刚体变换。
    """

    extents: np.ndarray
    pose: Isometry

    def __post_init__(self):
        extents = np.array(self.extents, dtype=np.float64).reshape(3)
        extents.setflags(write=False)
        object.__setattr__(self, "extents", extents)

    @property
    def center(self) -> np.ndarray:
        return self.pose.translation

    def vertex(self, x_choice: bool, y_choice: bool, z_choice: bool) -> np.ndarray:
        """
        返回框的一个顶点

        Args:
            x_choice: True 取 +extents.x/2，False 取 -extents.x/2
            y_choice: 同上，对应y轴
            z_choice: 同上，对应z轴

        Returns:
            np.ndarray: shape (3,)，传感器坐标系下的顶点
        """
        signs = np.array([1.0 if c else -1.0 for c in (x_choice, y_choice, z_choice)])
        return self.pose.transform_point(self.extents / 2.0 * signs)

    def vertices(self) -> np.ndarray:
        """
        按掩码 0b000..0b111 的顺序返回8个顶点

        掩码 bit0 对应x，bit1 对应y，bit2 对应z，位为1时取正方向。

        Returns:
            np.ndarray: shape (8, 3)
        """
        return np.stack(
            [self.vertex(bool(mask & 0b001), bool(mask & 0b010), bool(mask & 0b100)) for mask in range(8)]
        )

    def edges(self) -> List[Tuple[np.ndarray, np.ndarray]]:
        """返回用于绘制线框的14条线段（12条棱 + 2条朝向对角线）"""
        vertices = self.vertices()
        return [(vertices[i], vertices[j]) for i, j in BOX_EDGES]

    def __eq__(self, other) -> bool:
        if not isinstance(other, BBox3D):
            return NotImplemented
        return np.array_equal(self.extents, other.extents) and self.pose == other.pose

    def __hash__(self) -> int:
        return hash((self.extents.tobytes(), hash(self.pose)))


@dataclass(frozen=True)
class KittiObject:
    """代表某一帧中的一个标注物体"""

    class_name: str
    bbox3d: BBox3D
    bbox2d: BBox2D
    score: Optional[float] = None
    object_key: Optional[str] = None

    def is_scooter(self) -> bool:
        return self.class_name in ("Cyclist", "Scooter")


@dataclass(frozen=True)
class InfoPoint:
    """点云中的单个点"""

    point: np.ndarray
    intensity: float
    device_id: Optional[int] = None
    active: Optional[int] = None


@dataclass(frozen=True, eq=False)
class PointCloud:
    """一帧点云，按文件中的顺序保存

    xyz 为 (N, 3) float32，intensity 为 (N,) float32；
    device_id/active 仅部分数据源提供，缺失时为 None。
    """

    xyz: np.ndarray
    intensity: np.ndarray
    device_id: Optional[np.ndarray] = None
    active: Optional[np.ndarray] = None

    def __post_init__(self):
        for name in ("xyz", "intensity", "device_id", "active"):
            value = getattr(self, name)
            if value is not None:
                # 复制一份再冻结，不影响调用方传入的数组
                value = np.array(value)
                value.setflags(write=False)
                object.__setattr__(self, name, value)
        if self.xyz.ndim != 2 or self.xyz.shape[1] != 3:
            raise ValueError(f"xyz 必须为 (N, 3)，当前形状: {self.xyz.shape}")
        if len(self.intensity) != len(self.xyz):
            raise ValueError("intensity 与 xyz 的点数不一致")

    @classmethod
    def empty(cls) -> "PointCloud":
        return cls(xyz=np.zeros((0, 3), dtype=np.float32), intensity=np.zeros(0, dtype=np.float32))

    def __len__(self) -> int:
        return len(self.xyz)

    def __getitem__(self, i: int) -> InfoPoint:
        return InfoPoint(
            point=self.xyz[i],
            intensity=float(self.intensity[i]),
            device_id=None if self.device_id is None else int(self.device_id[i]),
            active=None if self.active is None else int(self.active[i]),
        )

    def select(self, mask: np.ndarray) -> "PointCloud":
        """按布尔掩码取子集，保持原有顺序"""
        return PointCloud(
            xyz=self.xyz[mask],
            intensity=self.intensity[mask],
            device_id=None if self.device_id is None else self.device_id[mask],
            active=None if self.active is None else self.active[mask],
        )


@dataclass(frozen=True)
class FrameData:
    """一帧组装完成的数据

    points_in_range/points_out_range 是相对于全部框的划分；
    num_points_map[i] 为落在第i个物体框内的点数，框重叠时同一个点会被多次计数。
    """

    index: int
    objects: List[KittiObject]
    points_in_range: PointCloud
    points_out_range: PointCloud
    num_points_map: List[int] = field(default_factory=list)
