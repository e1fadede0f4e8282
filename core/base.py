"""标注解析器基类模块

提供标注解析器的抽象基类和通用功能。
所有具体的标注解析器都应该继承BaseAnnotationParser类。
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from utils.structures import KittiObject

from .calib import KittiCalib
from .errors import KittiParseError


class BaseAnnotationParser(ABC):
    """标注解析器抽象基类

    定义了标注解析器的通用接口和工具方法。
    每种标注格式的坐标约定（高度偏移、坐标变换、尺寸重排、旋转偏移）
    都只在各自的子类中实现，互不共享。

    Attributes:
        exclude_classes: 需要跳过的类别名称
        requires_calib: 解析时是否必须提供标定数据
    """

    requires_calib: bool = False

    def __init__(self, exclude_classes: Optional[Iterable[str]] = None) -> None:
        """初始化解析器

        Args:
            exclude_classes: 需要跳过的类别，例如 ["DontCare"]
        """
        super().__init__()
        self.exclude_classes = frozenset(exclude_classes or ())

    @abstractmethod
    def parse(self, ann_path: Path, calib: Optional[KittiCalib] = None) -> List[KittiObject]:
        """解析一个标注文件

        Args:
            ann_path: 标注文件路径
            calib: 当前帧的标定数据，部分格式不需要

        Returns:
            统一表示的物体列表，3D框位于激光雷达坐标系
        """
        pass

    def read_lines(self, ann_path: Path) -> List[str]:
        """读取文本标注文件的所有行

        Raises:
            FileNotFoundError: 文件不存在
        """
        ann_path = Path(ann_path)
        if not ann_path.exists():
            raise FileNotFoundError(f"标注文件不存在: {ann_path}")
        with open(ann_path, "r", encoding="utf-8") as f:
            return f.read().splitlines()

    @staticmethod
    def parse_floats(words: Sequence[str], source=None, line_no: Optional[int] = None) -> List[float]:
        """将一组字段解析为浮点数

        Raises:
            KittiParseError: 存在非数值字段
        """
        try:
            return [float(w) for w in words]
        except ValueError:
            raise KittiParseError(f"存在非数值字段: {' '.join(words)}", source, line_no)
