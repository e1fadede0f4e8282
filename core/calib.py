#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
标定数据读取模块

该模块负责解析KITTI格式的逐帧标定文件，包括：
1. 读取投影矩阵、激光雷达到相机的变换以及矫正旋转
2. 推导矫正相机坐标系到激光雷达(velodyne)坐标系的刚体变换
"""

import re
from pathlib import Path
from typing import Dict, Union

import numpy as np

from utils.geometry import Isometry, nearest_rotation

from .errors import KittiParseError

# 标定文件中的键 -> (属性名, 矩阵形状)
CALIB_KEYS = {
    "P0": ("p0", (3, 4)),
    "Tr_velo_to_cam": ("velo_to_cam", (3, 4)),
    "R0_rect": ("r0_rect", (3, 3)),
}


class KittiCalib:
    """
    逐帧标定数据

    Attributes:
        p0: 3x4，矫正相机坐标系(3D)到图像平面(2D)的投影矩阵
        velo_to_cam: 3x4，激光雷达坐标系到相机坐标系的变换
        r0_rect: 3x3，矫正旋转
    """

    def __init__(self, p0: np.ndarray, velo_to_cam: np.ndarray, r0_rect: np.ndarray):
        self.p0 = self._frozen(p0, (3, 4))
        self.velo_to_cam = self._frozen(velo_to_cam, (3, 4))
        self.r0_rect = self._frozen(r0_rect, (3, 3))
        self._rect_to_velo = None

    @staticmethod
    def _frozen(matrix: np.ndarray, shape) -> np.ndarray:
        mat = np.array(matrix, dtype=np.float64).reshape(shape)
        mat.setflags(write=False)
        return mat

    @classmethod
    def from_file(cls, calib_path: Union[str, Path]) -> "KittiCalib":
        """
        从标定文件加载

        Args:
            calib_path: 标定文件路径

        Returns:
            KittiCalib 实例

        Raises:
            FileNotFoundError: 文件不存在
            KittiParseError: 数值无法解析或个数不符
        """
        calib_path = Path(calib_path)
        if not calib_path.exists():
            raise FileNotFoundError(f"标定文件不存在: {calib_path}")

        with open(calib_path, "r", encoding="utf-8") as f:
            return cls.from_text(f.read(), source=calib_path)

    @classmethod
    def from_text(cls, text: str, source=None) -> "KittiCalib":
        """解析标定文件内容，未识别的键直接忽略"""
        matrices: Dict[str, np.ndarray] = {
            "p0": np.zeros((3, 4)),
            "velo_to_cam": np.zeros((3, 4)),
            "r0_rect": np.zeros((3, 3)),
        }

        for line_no, line in enumerate(text.splitlines(), start=1):
            # 同时兼容 "KEY: v1 v2" 与 "KEY v1 v2"
            words = [w for w in re.split(r"[ :\t]+", line.strip()) if w]
            if not words or words[0] not in CALIB_KEYS:
                continue

            name, shape = CALIB_KEYS[words[0]]
            try:
                values = [float(w) for w in words[1:]]
            except ValueError:
                raise KittiParseError(f"{words[0]} 中包含非数值字段", source, line_no)

            expected = shape[0] * shape[1]
            if len(values) != expected:
                raise KittiParseError(f"{words[0]} 期望 {expected} 个数值，实际 {len(values)} 个", source, line_no)
            matrices[name] = np.array(values).reshape(shape)

        return cls(**matrices)

    def get_transformation_from_rectified_camera_to_velodyne(self) -> Isometry:
        """
        矫正相机坐标系 -> 激光雷达坐标系的刚体变换

        rect2velo = inverse(velo_to_cam) * rect_to_cam，
        其中 rect_to_cam 为矫正旋转(投影到单位旋转)的逆。
        """
        if self._rect_to_velo is None:
            rect_to_cam = Isometry(nearest_rotation(self.r0_rect)).inverse()
            velo_to_cam = Isometry(nearest_rotation(self.velo_to_cam[:, :3]), self.velo_to_cam[:, 3])
            self._rect_to_velo = velo_to_cam.inverse() * rect_to_cam
        return self._rect_to_velo

    def project_velo_to_image(self, points: np.ndarray) -> np.ndarray:
        """
        将激光雷达坐标系下的点投影到图像平面

        Args:
            points: shape (N, 3)，激光雷达坐标系下的点

        Returns:
            np.ndarray: shape (N, 2)，像素坐标；位于相机后方的点为 NaN
        """
        rect_points = self.get_transformation_from_rectified_camera_to_velodyne().inverse().transform_points(points)
        points_homo = np.hstack([rect_points, np.ones((rect_points.shape[0], 1))])
        pixels_homo = points_homo @ self.p0.T

        z_coords = pixels_homo[:, 2:3]
        pixels = np.full((len(points_homo), 2), np.nan)
        valid = z_coords[:, 0] > 1e-8
        pixels[valid] = pixels_homo[valid, :2] / z_coords[valid]
        return pixels

    def __repr__(self) -> str:
        return "KittiCalib(p0, velo_to_cam, r0_rect)"
