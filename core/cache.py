"""帧缓存模块

按帧号缓存组装好的 FrameData，超过容量时淘汰最久未使用的条目。
访问记录与数据保存在同一个有序字典中，两者不会失去同步。
"""

from collections import OrderedDict
from typing import Callable, Iterable, List, Optional

from tqdm import tqdm

from utils.logger import default_logger
from utils.structures import FrameData

from .errors import FrameLoadError

DEFAULT_CAPACITY = 32

FrameLoaderFn = Callable[[int], FrameData]


class FrameCache:
    """LRU帧缓存

    仅在交互主循环中使用，不做加锁。

    Attributes:
        capacity: 最大缓存条目数
    """

    def __init__(self, loader: FrameLoaderFn, capacity: int = DEFAULT_CAPACITY):
        """
        Args:
            loader: 缓存未命中时调用的加载函数，例如 FrameLoader.load_frame
            capacity: 最大缓存条目数
        """
        if capacity < 1:
            raise ValueError(f"缓存容量必须大于0，当前值: {capacity}")
        self.capacity = capacity
        self._loader = loader
        self._entries: "OrderedDict[int, FrameData]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, index: int) -> bool:
        return index in self._entries

    def keys(self) -> List[int]:
        """按从最久未使用到最近使用的顺序返回帧号"""
        return list(self._entries.keys())

    def peek(self, index: int) -> Optional[FrameData]:
        """读取缓存但不更新访问记录"""
        return self._entries.get(index)

    def get_or_load(self, index: int, loader: Optional[FrameLoaderFn] = None) -> FrameData:
        """
        返回缓存中的帧，未命中时加载并插入

        Args:
            index: 帧号
            loader: 覆盖构造时传入的加载函数

        Returns:
            FrameData

        Raises:
            FrameLoadError: 加载失败，缓存保持不变
        """
        if index in self._entries:
            self._entries.move_to_end(index)
            return self._entries[index]

        try:
            frame = (loader or self._loader)(index)
        except Exception as e:
            raise FrameLoadError(index, e) from e

        self.insert(index, frame)
        return frame

    def insert(self, index: int, frame: FrameData) -> Optional[int]:
        """
        插入一帧，超出容量时淘汰最久未使用的条目

        Returns:
            被淘汰的帧号，没有淘汰时返回None
        """
        self._entries[index] = frame
        self._entries.move_to_end(index)
        if len(self._entries) <= self.capacity:
            return None

        evicted, _ = self._entries.popitem(last=False)
        default_logger.debug(f"缓存已满，淘汰帧 {evicted:06d}")
        return evicted

    def prefetch(self, indices: Iterable[int]) -> int:
        """
        预加载若干帧，失败的帧记录日志后跳过

        Returns:
            成功加载的帧数
        """
        indices = list(indices)[: self.capacity]
        loaded = 0
        for index in tqdm(indices, desc="预加载帧"):
            try:
                self.get_or_load(index)
                loaded += 1
            except FrameLoadError as e:
                default_logger.error(str(e))
        return loaded
