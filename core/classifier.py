"""点-框判定模块

判断点是否落在有向3D框内。每个框在局部坐标系的三个轴上各放大 margin。
"""

from typing import List, Sequence, Tuple

import numpy as np

from utils.structures import KittiObject, PointCloud

ENLARGE_MARGIN = 0.1


def in_box_mask(xyz: np.ndarray, obj: KittiObject, margin: float = ENLARGE_MARGIN) -> np.ndarray:
    """
    计算每个点是否落在单个物体的框内

    Args:
        xyz: shape (N, 3)，激光雷达坐标系下的点
        obj: 物体
        margin: 每个轴上的放大量

    Returns:
        np.ndarray: shape (N,) 的布尔数组
    """
    bbox = obj.bbox3d
    local = bbox.pose.inverse().transform_points(xyz)
    half = bbox.extents / 2.0 + margin
    return np.all(np.abs(local) < half, axis=1)


def in_any_box(point: Sequence[float], objects: Sequence[KittiObject], margin: float = ENLARGE_MARGIN) -> bool:
    """单个点是否落在任意一个物体的框内，命中第一个即返回"""
    xyz = np.asarray(point, dtype=np.float64).reshape(1, 3)
    for obj in objects:
        if in_box_mask(xyz, obj, margin)[0]:
            return True
    return False


def in_any_box_mask(xyz: np.ndarray, objects: Sequence[KittiObject], margin: float = ENLARGE_MARGIN) -> np.ndarray:
    """in_any_box 的批量版本"""
    mask = np.zeros(len(xyz), dtype=bool)
    for obj in objects:
        mask |= in_box_mask(xyz, obj, margin)
    return mask


def count_points_per_object(
    xyz: np.ndarray, objects: Sequence[KittiObject], margin: float = ENLARGE_MARGIN
) -> List[int]:
    """
    统计落在每个物体框内的点数

    每个物体独立统计，框重叠时同一个点会计入多个物体。
    开销为 点数 x 物体数。
    """
    return [int(in_box_mask(xyz, obj, margin).sum()) for obj in objects]


def split_points(
    cloud: PointCloud, objects: Sequence[KittiObject], margin: float = ENLARGE_MARGIN
) -> Tuple[PointCloud, PointCloud]:
    """
    将点云划分为框内点和框外点

    Returns:
        (points_in_range, points_out_range)，各自保持原有顺序
    """
    mask = in_any_box_mask(cloud.xyz, objects, margin)
    return cloud.select(mask), cloud.select(~mask)
