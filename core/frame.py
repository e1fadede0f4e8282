#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
帧组装模块

该模块负责按帧号读取标定、标注和点云，并组装为 FrameData：
1. 按6位零填充帧号解析各类文件路径
2. 选择标注解析器并读取物体
3. 读取点云并按物体框划分框内/框外点，统计每个物体的点数
"""

from pathlib import Path
from typing import List, Optional

from utils.config import Config
from utils.logger import default_logger
from utils.structures import FrameData, KittiObject

from .base import BaseAnnotationParser
from .calib import KittiCalib
from .classifier import ENLARGE_MARGIN, count_points_per_object, split_points
from .errors import NoFramesError
from .factory import AnnotationParserFactory
from .pointcloud import load_point_cloud

LABEL_DIR = "label_2"
CALIB_DIR = "calib"
VELODYNE_DIR = "velodyne"
SUPERVISELY_SUFFIX = ".pcd.json"


def frame_name(index: int) -> str:
    return f"{index:06d}"


def get_indices_from_ann_dir(ann_dir: Path, suffix: str = ".txt") -> List[int]:
    """
    扫描标注目录，返回升序排列的帧号

    文件名去掉后缀后必须是纯数字，其余文件忽略。

    Raises:
        OSError: 目录不存在
    """
    ann_dir = Path(ann_dir)
    if not ann_dir.is_dir():
        raise OSError(f"路径不存在: {ann_dir}")

    indices = []
    for item in ann_dir.iterdir():
        if not item.is_file() or not item.name.endswith(suffix):
            continue
        stem = item.name[: -len(suffix)]
        if stem.isdigit():
            indices.append(int(stem))
    return sorted(indices)


class FrameLoader:
    """
    帧加载器

    Attributes:
        kitti_dir: 包含 label_2/calib/velodyne 的根目录
        supervisely_ann_dir: 外部JSON标注目录，存在时覆盖文本标注
        parser: 标注解析器
    """

    def __init__(
        self,
        kitti_dir: Path,
        parser: BaseAnnotationParser,
        supervisely_ann_dir: Optional[Path] = None,
        pointcloud_suffix: str = ".bin",
        margin: float = ENLARGE_MARGIN,
    ):
        self.kitti_dir = Path(kitti_dir)
        self.supervisely_ann_dir = Path(supervisely_ann_dir) if supervisely_ann_dir else None
        self.parser = parser
        self.pointcloud_suffix = pointcloud_suffix
        self.margin = margin

    @classmethod
    def from_config(cls, config: Config) -> "FrameLoader":
        return cls(
            kitti_dir=config.kitti_dir,
            parser=AnnotationParserFactory.create_from_config(config),
            supervisely_ann_dir=config.supervisely_ann_dir,
            pointcloud_suffix=config.pointcloud_suffix,
            margin=config.classifier.enlarge_margin,
        )

    def label_path(self, index: int) -> Path:
        return self.kitti_dir / LABEL_DIR / f"{frame_name(index)}.txt"

    def calib_path(self, index: int) -> Path:
        return self.kitti_dir / CALIB_DIR / f"{frame_name(index)}.txt"

    def pointcloud_path(self, index: int) -> Path:
        return self.kitti_dir / VELODYNE_DIR / f"{frame_name(index)}{self.pointcloud_suffix}"

    def supervisely_path(self, index: int) -> Path:
        return self.supervisely_ann_dir / f"{frame_name(index)}{SUPERVISELY_SUFFIX}"

    def discover_indices(self) -> List[int]:
        """
        列出所有可用的帧号

        Raises:
            NoFramesError: 没有找到任何帧
        """
        if self.supervisely_ann_dir is not None:
            ann_dir, suffix = self.supervisely_ann_dir, SUPERVISELY_SUFFIX
        else:
            ann_dir, suffix = self.kitti_dir / LABEL_DIR, ".txt"

        try:
            indices = get_indices_from_ann_dir(ann_dir, suffix)
        except OSError as e:
            raise NoFramesError(f"无法读取标注目录 {ann_dir}: {e}")
        if not indices:
            raise NoFramesError(f"标注目录中没有任何帧: {ann_dir}，目录是否为空？")
        return indices

    def load_objects(self, index: int) -> List[KittiObject]:
        """读取指定帧的物体"""
        if self.supervisely_ann_dir is not None:
            return self.parser.parse(self.supervisely_path(index))

        calib = KittiCalib.from_file(self.calib_path(index)) if self.parser.requires_calib else None
        return self.parser.parse(self.label_path(index), calib)

    def load_frame(self, index: int) -> FrameData:
        """
        组装指定帧

        Raises:
            FileNotFoundError: 标定、标注或点云文件缺失
            KittiParseError: 文件内容无法解析
            ObjectLookupError: 外部标注中的引用无法解析
        """
        objects = self.load_objects(index)
        cloud = load_point_cloud(self.pointcloud_path(index))

        points_in_range, points_out_range = split_points(cloud, objects, self.margin)
        num_points_map = count_points_per_object(cloud.xyz, objects, self.margin)

        default_logger.debug(
            f"帧 {frame_name(index)}: {len(objects)} 个物体, {len(cloud)} 个点, 框内 {len(points_in_range)} 个"
        )
        return FrameData(
            index=index,
            objects=objects,
            points_in_range=points_in_range,
            points_out_range=points_out_range,
            num_points_map=num_points_map,
        )
