#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
标注解析模块

该模块提供三种标注格式的解析器，输出统一的 KittiObject 列表：
1. KITTI 文本标注：矫正相机坐标系，需标定数据转换到激光雷达坐标系
2. philly 文本标注：字段相同，但位姿直接沿用原始坐标，不做转换
3. Supervisely 点云JSON标注：直接位于激光雷达坐标系
"""

import json
import math
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

from utils.geometry import Isometry
from utils.structures import BBox2D, BBox3D, KittiObject

from .base import BaseAnnotationParser
from .calib import KittiCalib
from .errors import KittiParseError, ObjectLookupError

MIN_LABEL_FIELDS = 15


class LabelFields(NamedTuple):
    """文本标注一行中与坐标约定无关的字段"""

    class_name: str
    bbox2d: BBox2D
    dimensions: List[float]  # (height, width, length)
    location: List[float]  # 矫正相机坐标系下的底面中心 (x, y, z)
    rotation_y: float
    score: Optional[float]


def split_label_line(line: str, source=None, line_no: Optional[int] = None) -> LabelFields:
    """
    拆分一行文本标注

    字段布局: 0 类别; 4-7 2D框 (left, top, right, bottom); 8-10 尺寸 (h, w, l);
    11-13 位置 (x, y, z); 14 绕相机竖直轴的偏航角; 15 置信度(可选)

    Raises:
        KittiParseError: 字段不足或存在非数值字段
    """
    words = line.split()
    if len(words) < MIN_LABEL_FIELDS:
        raise KittiParseError(f"标注行至少需要 {MIN_LABEL_FIELDS} 个字段，实际 {len(words)} 个", source, line_no)

    parse = BaseAnnotationParser.parse_floats
    left, top, right, bottom = parse(words[4:8], source, line_no)
    dimensions = parse(words[8:11], source, line_no)
    location = parse(words[11:14], source, line_no)
    (rotation_y,) = parse(words[14:15], source, line_no)
    score = parse(words[15:16], source, line_no)[0] if len(words) >= 16 else None

    return LabelFields(
        class_name=words[0],
        bbox2d=BBox2D.from_tlbr([top, left, bottom, right]),
        dimensions=dimensions,
        location=location,
        rotation_y=rotation_y,
        score=score,
    )


class KittiLabelParser(BaseAnnotationParser):
    """
    KITTI 标注解析器

    位置为框底面中心，先上移半个框高得到几何中心，再经 rect->velo 变换；
    偏航角取反并减去90°；尺寸由 (h, w, l) 重排为 (l, w, h)。
    """

    requires_calib = True

    def parse(self, ann_path: Path, calib: Optional[KittiCalib] = None) -> List[KittiObject]:
        if calib is None:
            raise ValueError("KITTI 标注解析需要标定数据")

        rect2velo = calib.get_transformation_from_rectified_camera_to_velodyne()
        objects = []
        for line_no, line in enumerate(self.read_lines(ann_path), start=1):
            if not line.strip():
                continue
            obj = self.parse_line(line, rect2velo, ann_path, line_no)
            if obj is not None:
                objects.append(obj)
        return objects

    def parse_line(
        self, line: str, rect2velo: Isometry, source=None, line_no: Optional[int] = None
    ) -> Optional[KittiObject]:
        """解析单行，类别被排除时返回None"""
        if line.split()[0] in self.exclude_classes:
            return None

        fields = split_label_line(line, source, line_no)
        height, width, length = fields.dimensions
        x, y, z = fields.location

        # 相机坐标系y轴向下，上移半个框高
        rect_center = [x, y - height / 2.0, z]
        velo_center = rect2velo.transform_point(rect_center)
        z_rot = -fields.rotation_y - math.pi / 2.0

        bbox3d = BBox3D(
            extents=[length, width, height],
            pose=Isometry.from_euler(velo_center, 0.0, 0.0, z_rot),
        )
        return KittiObject(
            class_name=fields.class_name,
            bbox3d=bbox3d,
            bbox2d=fields.bbox2d,
            score=fields.score,
        )


class PhillyLabelParser(BaseAnnotationParser):
    """
    philly 标注解析器

    与 KITTI 行格式相同，但位置与偏航角按原样使用：
    不做高度偏移，不做坐标变换，尺寸保持 (h, w, l) 的顺序。
    """

    def parse(self, ann_path: Path, calib: Optional[KittiCalib] = None) -> List[KittiObject]:
        objects = []
        for line_no, line in enumerate(self.read_lines(ann_path), start=1):
            if not line.strip():
                continue
            obj = self.parse_line(line, ann_path, line_no)
            if obj is not None:
                objects.append(obj)
        return objects

    def parse_line(self, line: str, source=None, line_no: Optional[int] = None) -> Optional[KittiObject]:
        """解析单行，类别被排除时返回None"""
        if line.split()[0] in self.exclude_classes:
            return None

        fields = split_label_line(line, source, line_no)
        bbox3d = BBox3D(
            extents=fields.dimensions,
            pose=Isometry.from_euler(fields.location, 0.0, 0.0, fields.rotation_y),
        )
        return KittiObject(
            class_name=fields.class_name,
            bbox3d=bbox3d,
            bbox2d=fields.bbox2d,
            score=fields.score,
        )


class SuperviselyParser(BaseAnnotationParser):
    """
    Supervisely 点云标注解析器

    figures 通过 objectKey 引用 objects；尺寸由 (lx, ly, lz) 重排为 (ly, lz, lx)，
    旋转使用欧拉角 (rx, ry, rz + 90°)。该格式没有2D框，统一置为零框。
    """

    CONFIDENCE_TAG = "Confidence"
    DEFAULT_SCORE = 1.0

    def parse(self, ann_path: Path, calib: Optional[KittiCalib] = None) -> List[KittiObject]:
        ann_path = Path(ann_path)
        if not ann_path.exists():
            raise FileNotFoundError(f"标注文件不存在: {ann_path}")

        try:
            with open(ann_path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise KittiParseError(f"JSON格式错误: {e}", ann_path)

        return self.parse_document(document, ann_path)

    def parse_document(self, document: Dict[str, Any], source=None) -> List[KittiObject]:
        """解析已加载的JSON文档"""
        if not isinstance(document, dict):
            raise KittiParseError("标注文档根节点必须是字典类型", source)

        figures = document.get("figures", [])
        objects = document.get("objects", [])
        if not isinstance(figures, list) or not isinstance(objects, list):
            raise KittiParseError("figures 与 objects 必须是列表", source)

        objects_by_key = {}
        for obj in objects:
            if not isinstance(obj, dict) or "key" not in obj:
                raise KittiParseError("object 缺少 key 字段", source)
            objects_by_key.setdefault(obj["key"], obj)

        return [self._convert_figure(figure, objects_by_key, source) for figure in figures]

    def _convert_figure(self, figure: Dict[str, Any], objects_by_key: Dict[str, Dict], source) -> KittiObject:
        try:
            object_key = figure["objectKey"]
            geometry = figure["geometry"]
            x, y, z = self._vector(geometry["position"])
            rx, ry, rz = self._vector(geometry["rotation"])
            lx, ly, lz = self._vector(geometry["dimensions"])
        except (KeyError, TypeError, ValueError) as e:
            raise KittiParseError(f"figure 结构错误: {e}", source)

        super_object = objects_by_key.get(object_key)
        if super_object is None:
            raise ObjectLookupError(object_key, source)

        bbox3d = BBox3D(
            extents=[ly, lz, lx],
            pose=Isometry.from_euler([x, y, z], rx, ry, rz + math.pi / 2.0),
        )
        return KittiObject(
            class_name=self._class_title(super_object, source),
            bbox3d=bbox3d,
            bbox2d=BBox2D.zero(),
            score=self._confidence(super_object, source),
            object_key=super_object["key"],
        )

    @staticmethod
    def _class_title(super_object: Dict[str, Any], source) -> str:
        class_title = super_object.get("classTitle")
        if not isinstance(class_title, str) or not class_title:
            raise KittiParseError(f"object '{super_object['key']}' 缺少 classTitle 字段", source)
        return class_title

    @staticmethod
    def _vector(value: Dict[str, Any]) -> List[float]:
        return [float(value["x"]), float(value["y"]), float(value["z"])]

    def _confidence(self, super_object: Dict[str, Any], source) -> float:
        """读取 Confidence 标签，缺失或值不是文本时默认为1.0"""
        tag = next(
            (t for t in super_object.get("tags") or [] if isinstance(t, dict) and t.get("name") == self.CONFIDENCE_TAG),
            None,
        )
        if tag is None:
            return self.DEFAULT_SCORE

        value = tag.get("value")
        if not isinstance(value, str):
            return self.DEFAULT_SCORE
        try:
            return float(value)
        except ValueError:
            raise KittiParseError(f"Confidence 标签的值不是数值: {value!r}", source)
