#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
点云读取模块

支持两种点云文件：
1. KITTI velodyne .bin：小端 float32，每4个数为一个点 (x, y, z, intensity)
2. PLY：通过 plyfile 读取，可带 device_id / active 属性
"""

from pathlib import Path
from typing import BinaryIO, Union

import numpy as np
from plyfile import PlyData

from utils.structures import PointCloud

from .errors import KittiParseError, TruncatedPointCloudError

# 每个点4个float32
POINT_RECORD_BYTES = 4 * 4
_BIN_DTYPE = np.dtype("<f4")


def decode_bin(buffer: bytes, source=None) -> PointCloud:
    """
    解码velodyne二进制数据

    Args:
        buffer: 原始字节
        source: 用于错误信息的来源描述

    Returns:
        PointCloud

    Raises:
        TruncatedPointCloudError: 数据在一个点的中途结束
    """
    remainder = len(buffer) % POINT_RECORD_BYTES
    if remainder:
        raise TruncatedPointCloudError(
            f"点云数据在记录中途结束: 共 {len(buffer)} 字节，多出 {remainder} 字节", source
        )

    values = np.frombuffer(buffer, dtype=_BIN_DTYPE).reshape(-1, 4).astype(np.float32, copy=False)
    return PointCloud(xyz=values[:, :3], intensity=values[:, 3])


def read_bin(stream: BinaryIO, source=None, chunk_points: int = 65536) -> PointCloud:
    """按块读取二进制流，只在点的边界处结束"""
    chunks = []
    pending = b""
    chunk_size = chunk_points * POINT_RECORD_BYTES
    while True:
        data = stream.read(chunk_size)
        if not data:
            break
        data = pending + data
        usable = len(data) - len(data) % POINT_RECORD_BYTES
        if usable:
            # 每块读入后立即解码，只在记录边界处切分
            chunks.append(np.frombuffer(data, dtype=_BIN_DTYPE, count=usable // 4).reshape(-1, 4))
        pending = data[usable:]

    if pending:
        raise TruncatedPointCloudError(f"点云数据在记录中途结束: 多出 {len(pending)} 字节", source)
    if not chunks:
        return PointCloud.empty()
    values = np.concatenate(chunks).astype(np.float32, copy=False)
    return PointCloud(xyz=values[:, :3], intensity=values[:, 3])


def load_bin(pcd_path: Union[str, Path]) -> PointCloud:
    """
    读取velodyne .bin点云文件

    Raises:
        FileNotFoundError: 文件不存在
        TruncatedPointCloudError: 文件长度不是16字节的整数倍
    """
    pcd_path = Path(pcd_path)
    if not pcd_path.exists():
        raise FileNotFoundError(f"点云文件不存在: {pcd_path}")
    with open(pcd_path, "rb") as f:
        return read_bin(f, source=pcd_path)


def load_ply(pcd_path: Union[str, Path]) -> PointCloud:
    """
    读取PLY点云文件

    必须包含 x/y/z；intensity 缺失时置0；device_id 与 active 存在时一并读取。

    Raises:
        FileNotFoundError: 文件不存在
        KittiParseError: 缺少vertex元素或坐标属性
    """
    pcd_path = Path(pcd_path)
    if not pcd_path.exists():
        raise FileNotFoundError(f"点云文件不存在: {pcd_path}")

    ply = PlyData.read(str(pcd_path))
    if "vertex" not in ply:
        raise KittiParseError("PLY缺少vertex元素", pcd_path)
    vertices = ply["vertex"].data
    names = set(vertices.dtype.names)
    if not {"x", "y", "z"}.issubset(names):
        raise KittiParseError("vertex缺少x/y/z属性", pcd_path)

    xyz = np.stack([vertices["x"], vertices["y"], vertices["z"]], axis=1).astype(np.float32)
    if "intensity" in names:
        intensity = np.asarray(vertices["intensity"], dtype=np.float32)
    else:
        intensity = np.zeros(len(xyz), dtype=np.float32)

    return PointCloud(
        xyz=xyz,
        intensity=intensity,
        device_id=np.asarray(vertices["device_id"], dtype=np.uint64) if "device_id" in names else None,
        active=np.asarray(vertices["active"], dtype=np.uint64) if "active" in names else None,
    )


def load_point_cloud(pcd_path: Union[str, Path]) -> PointCloud:
    """根据扩展名选择读取方式"""
    suffix = Path(pcd_path).suffix.lower()
    if suffix == ".ply":
        return load_ply(pcd_path)
    return load_bin(pcd_path)
