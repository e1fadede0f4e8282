"""解析器工厂模块

提供标注解析器的创建和管理功能，支持根据配置选择解析器实例。
"""

from typing import Dict, Iterable, List, Optional, Type

from utils.config import Config

from .annotations import KittiLabelParser, PhillyLabelParser, SuperviselyParser
from .base import BaseAnnotationParser


class AnnotationParserFactory:
    """解析器工厂类

    负责根据配置创建不同标注格式的解析器。
    支持动态注册新的解析器类型。
    """

    # 注册的解析器类型映射
    _parsers: Dict[str, Type[BaseAnnotationParser]] = {
        "kitti": KittiLabelParser,
        "philly": PhillyLabelParser,
        "supervisely": SuperviselyParser,
    }

    @classmethod
    def register_parser(cls, name: str, parser_class: Type[BaseAnnotationParser]) -> None:
        """注册新的解析器类型

        Args:
            name: 解析器名称
            parser_class: 解析器类

        Raises:
            ValueError: 当解析器名称已存在或类型不合法时
        """
        if name in cls._parsers:
            raise ValueError(f"解析器 '{name}' 已经注册")

        if not issubclass(parser_class, BaseAnnotationParser):
            raise ValueError("解析器类必须继承自 BaseAnnotationParser")

        cls._parsers[name] = parser_class

    @classmethod
    def create_parser(cls, name: str, exclude_classes: Optional[Iterable[str]] = None) -> BaseAnnotationParser:
        """创建指定类型的解析器

        Raises:
            ValueError: 当解析器类型不存在时
        """
        if name not in cls._parsers:
            raise ValueError(f"未知的解析器类型: {name}")

        return cls._parsers[name](exclude_classes)

    @classmethod
    def get_available_parsers(cls) -> List[str]:
        return list(cls._parsers.keys())

    @classmethod
    def create_from_config(cls, config: Config) -> BaseAnnotationParser:
        """根据配置创建解析器

        配置了外部标注目录时总是使用 Supervisely 解析器，文本格式选项不再生效。
        """
        name = "supervisely" if config.supervisely_ann_dir is not None else config.label_format
        return cls.create_parser(name, config.exclude_classes)
