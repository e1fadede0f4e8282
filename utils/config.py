"""配置管理模块

提供一个经过验证的、支持属性式访问的配置类。
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

LABEL_FORMATS = ("kitti", "philly")
POINTCLOUD_SUFFIXES = (".bin", ".ply")


class CacheConfig:
    """封装帧缓存相关的配置"""

    def __init__(self, cache_dict: Dict[str, Any]):
        self.capacity: int = int(cache_dict.get("capacity", 32))
        self.prefetch: int = int(cache_dict.get("prefetch", 0))

        if self.capacity < 1:
            raise ValueError(f"cache.capacity 必须大于0，当前值: {self.capacity}")
        if self.prefetch < 0:
            raise ValueError(f"cache.prefetch 不能为负数，当前值: {self.prefetch}")


class ClassifierConfig:
    """封装点-框判定相关的配置"""

    def __init__(self, classifier_dict: Dict[str, Any]):
        self.enlarge_margin: float = float(classifier_dict.get("enlarge_margin", 0.1))


class PlayerConfig:
    """封装自动播放与录制相关的配置"""

    def __init__(self, player_dict: Dict[str, Any]):
        self.frame_period_ms: int = int(player_dict.get("frame_period_ms", 100))
        self.loop: bool = bool(player_dict.get("loop", False))
        self.play_on_start: bool = bool(player_dict.get("play_on_start", False))
        self.record_on_start: bool = bool(player_dict.get("record_on_start", False))
        screencast_dir = player_dict.get("screencast_dir")
        self.screencast_dir: Optional[Path] = Path(screencast_dir) if screencast_dir else None

        if self.frame_period_ms <= 0:
            raise ValueError(f"player.frame_period_ms 必须大于0，当前值: {self.frame_period_ms}")


class ViewerConfig:
    """封装鸟瞰图显示相关的配置"""

    def __init__(self, viewer_dict: Dict[str, Any]):
        self.window_size: List[int] = [int(v) for v in viewer_dict.get("window_size", [1280, 960])]
        self.pixels_per_meter: float = float(viewer_dict.get("pixels_per_meter", 10.0))
        self.range_boundary: List[float] = [
            float(v) for v in viewer_dict.get("range_boundary", [-30.0, -40.0, 40.4, 40.0])
        ]

        if len(self.window_size) != 2:
            raise ValueError("viewer.window_size 必须为 [宽, 高]")
        if len(self.range_boundary) != 4:
            raise ValueError("viewer.range_boundary 必须为 [x_min, y_min, x_max, y_max]")
        if self.pixels_per_meter <= 0:
            raise ValueError("viewer.pixels_per_meter 必须大于0")


class LogConfig:
    """封装日志相关的配置"""

    def __init__(self, log_dict: Dict[str, Any]):
        self.level: str = str(log_dict.get("level", "INFO")).upper()
        self.color: bool = bool(log_dict.get("color", True))


class Config:
    """
    配置类，提供加载、验证和属性式访问功能。

    示例:
        config = Config()
        kitti_dir = config.kitti_dir  # 属性式访问
        capacity = config.cache.capacity
    """

    _SECTIONS = {
        "cache": CacheConfig,
        "classifier": ClassifierConfig,
        "player": PlayerConfig,
        "viewer": ViewerConfig,
        "log": LogConfig,
    }

    def __init__(self, path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None) -> None:
        """
        初始化并加载配置。

        Args:
            path: 配置文件路径。如果为None，则默认加载项目根目录下的 'config.yaml'。
            overrides: 覆盖文件内容的配置项，值为None的项会被忽略。
                嵌套节使用字典，例如 {"player": {"loop": True}}。

        Raises:
            FileNotFoundError: 如果配置文件不存在。
            ValueError: 如果缺少必要的配置项或取值非法。
        """
        if path is None:
            path = Path(__file__).parent.parent / "config.yaml"

        raw = self._load(Path(path))
        self._populate(self._merge(raw, overrides or {}))

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "Config":
        """直接由字典构建配置，不读取文件"""
        instance = cls.__new__(cls)
        instance._populate(dict(config))
        return instance

    def _populate(self, config: Dict[str, Any]) -> None:
        """验证配置并将顶层键作为属性添加到实例上"""
        self._config = self._validate(config)

        for key, value in self._config.items():
            if key in self._SECTIONS:
                setattr(self, key, self._SECTIONS[key](value or {}))
            elif key in ("kitti_dir", "supervisely_ann_dir"):
                setattr(self, key, Path(value) if value else None)
            else:
                setattr(self, key, value)

        # 未出现在文件中的节也提供默认值
        for key, section_class in self._SECTIONS.items():
            if key not in self._config:
                setattr(self, key, section_class({}))

    def _load(self, path: Path) -> Dict[str, Any]:
        """加载配置文件"""
        if not path.exists():
            raise FileNotFoundError(f"配置文件不存在: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"配置文件格式错误: {e}")

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise TypeError("配置文件根节点必须是字典类型")
        return config

    @staticmethod
    def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        merged = dict(base)
        for key, value in overrides.items():
            if value is None:
                continue
            if isinstance(value, dict):
                section = dict(merged.get(key) or {})
                section.update({k: v for k, v in value.items() if v is not None})
                merged[key] = section
            else:
                merged[key] = value
        return merged

    @staticmethod
    def _validate(config: Dict[str, Any]) -> Dict[str, Any]:
        """验证必要的键以及取值范围"""
        if not config.get("kitti_dir"):
            raise ValueError("配置文件中缺少必要的键: 'kitti_dir'")

        config.setdefault("supervisely_ann_dir", None)
        config.setdefault("label_format", "kitti")
        config.setdefault("exclude_classes", ["DontCare"])
        config.setdefault("pointcloud_suffix", ".bin")

        if config["label_format"] not in LABEL_FORMATS:
            raise ValueError(f"label_format 必须是 {LABEL_FORMATS} 之一，当前值: {config['label_format']}")
        if config["pointcloud_suffix"] not in POINTCLOUD_SUFFIXES:
            raise ValueError(
                f"pointcloud_suffix 必须是 {POINTCLOUD_SUFFIXES} 之一，当前值: {config['pointcloud_suffix']}"
            )
        if not isinstance(config["exclude_classes"], list):
            raise ValueError("exclude_classes 必须是列表")

        for section in Config._SECTIONS:
            if section in config and config[section] is not None and not isinstance(config[section], dict):
                raise ValueError(f"配置节 '{section}' 必须是字典类型")

        return config

    def get(self, key: str, default: Any = None) -> Any:
        """
        提供类似字典的get方法以安全地访问配置项。

        Args:
            key: 配置项的键。
            default: 如果键不存在时返回的默认值。

        Returns:
            配置项的值或默认值。
        """
        return getattr(self, key, default)

    def __repr__(self) -> str:
        return f"Config(keys={list(self._config.keys())})"
