"""几何变换工具模块

提供刚体变换（旋转+平移）、欧拉角旋转以及最近旋转矩阵的求解功能。
"""

import math
from typing import Iterable, Sequence, Tuple

import numpy as np

# 3D框线框的连接关系，顶点按 bit0->x, bit1->y, bit2->z 的掩码顺序排列
# 最后两条为上下对角线，仅用于标示朝向
BOX_EDGES: Tuple[Tuple[int, int], ...] = (
    (0, 1),
    (0, 2),
    (1, 3),
    (2, 3),
    (4, 5),
    (4, 6),
    (5, 7),
    (6, 7),
    (0, 4),
    (1, 5),
    (2, 6),
    (3, 7),
    (1, 7),
    (3, 5),
)


def rotation_from_euler(roll: float, pitch: float, yaw: float) -> np.ndarray:
    """
    由欧拉角构建旋转矩阵

    旋转顺序为先绕x轴(roll)，再绕y轴(pitch)，最后绕z轴(yaw)，即 R = Rz @ Ry @ Rx

    Args:
        roll: 绕x轴的旋转角（弧度）
        pitch: 绕y轴的旋转角（弧度）
        yaw: 绕z轴的旋转角（弧度）

    Returns:
        np.ndarray: shape (3, 3)，旋转矩阵
    """
    cr, sr = math.cos(roll), math.sin(roll)
    cp, sp = math.cos(pitch), math.sin(pitch)
    cy, sy = math.cos(yaw), math.sin(yaw)

    rx = np.array([[1, 0, 0], [0, cr, -sr], [0, sr, cr]])
    ry = np.array([[cp, 0, sp], [0, 1, 0], [-sp, 0, cp]])
    rz = np.array([[cy, -sy, 0], [sy, cy, 0], [0, 0, 1]])
    return rz @ ry @ rx


def nearest_rotation(matrix: np.ndarray) -> np.ndarray:
    """
    求与给定3x3矩阵最接近的正交旋转矩阵

    标定文件中的旋转矩阵带有数值误差，需要投影回SO(3)后再当作单位旋转使用。

    Args:
        matrix: shape (3, 3)

    Returns:
        np.ndarray: shape (3, 3)，行列式为+1的旋转矩阵
    """
    u, _, vt = np.linalg.svd(np.asarray(matrix, dtype=np.float64))
    rotation = u @ vt
    if np.linalg.det(rotation) < 0:
        u[:, -1] *= -1
        rotation = u @ vt
    return rotation


class Isometry:
    """刚体变换

    由旋转矩阵和平移向量组成，作用于点时为 p' = R @ p + t。
    构造后不可修改，组合与求逆均返回新对象。
    """

    __slots__ = ("_rotation", "_translation")

    def __init__(self, rotation: np.ndarray = None, translation: Sequence[float] = None):
        rot = np.eye(3) if rotation is None else np.array(rotation, dtype=np.float64)
        trans = np.zeros(3) if translation is None else np.array(translation, dtype=np.float64)
        if rot.shape != (3, 3):
            raise ValueError(f"旋转矩阵必须为3x3，当前形状: {rot.shape}")
        if trans.shape != (3,):
            raise ValueError(f"平移向量必须包含3个元素，当前形状: {trans.shape}")
        rot.setflags(write=False)
        trans.setflags(write=False)
        self._rotation = rot
        self._translation = trans

    @classmethod
    def identity(cls) -> "Isometry":
        return cls()

    @classmethod
    def from_euler(cls, translation: Sequence[float], roll: float, pitch: float, yaw: float) -> "Isometry":
        """由平移和欧拉角构建刚体变换"""
        return cls(rotation_from_euler(roll, pitch, yaw), translation)

    @property
    def rotation(self) -> np.ndarray:
        return self._rotation

    @property
    def translation(self) -> np.ndarray:
        return self._translation

    def inverse(self) -> "Isometry":
        """返回逆变换"""
        rot_t = self._rotation.T
        return Isometry(rot_t, -rot_t @ self._translation)

    def matrix(self) -> np.ndarray:
        """返回4x4齐次变换矩阵"""
        mat = np.eye(4)
        mat[:3, :3] = self._rotation
        mat[:3, 3] = self._translation
        return mat

    def transform_point(self, point: Iterable[float]) -> np.ndarray:
        """变换单个点"""
        return self._rotation @ np.asarray(point, dtype=np.float64) + self._translation

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """
        批量变换点

        Args:
            points: shape (N, 3)

        Returns:
            np.ndarray: shape (N, 3)
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        return points @ self._rotation.T + self._translation

    def __mul__(self, other):
        # Isometry * Isometry 为组合，先作用右侧变换
        if isinstance(other, Isometry):
            return Isometry(
                self._rotation @ other._rotation,
                self._rotation @ other._translation + self._translation,
            )
        return self.transform_point(other)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Isometry):
            return NotImplemented
        return np.array_equal(self._rotation, other._rotation) and np.array_equal(
            self._translation, other._translation
        )

    def __hash__(self) -> int:
        return hash((self._rotation.tobytes(), self._translation.tobytes()))

    def __repr__(self) -> str:
        return f"Isometry(translation={self._translation.tolist()})"
