"""帧导航与自动播放模块

FrameCursor 维护当前帧在帧号列表中的位置；AutoplayTicker 按固定周期推进，
主循环卡顿后只推进一帧，不会连续快进。
"""

import time
from typing import Callable, List, Optional

DEFAULT_FRAME_PERIOD = 0.1


class AutoplayTicker:
    """
    固定周期的节拍器

    第一次调用 poll 只安排下一拍；之后每次到期时把下一拍按整周期推到当前时间之后，
    并报告一次到期。
    """

    def __init__(self, period: float = DEFAULT_FRAME_PERIOD, clock: Callable[[], float] = time.monotonic):
        if period <= 0:
            raise ValueError(f"播放周期必须大于0，当前值: {period}")
        self.period = period
        self._clock = clock
        self.next_tick: Optional[float] = None

    def reset(self) -> None:
        self.next_tick = None

    def poll(self) -> bool:
        """返回本次是否到期"""
        now = self._clock()
        if self.next_tick is None:
            self.next_tick = now + self.period
            return False
        if now < self.next_tick:
            return False
        while now >= self.next_tick:
            self.next_tick += self.period
        return True


class FrameCursor:
    """
    当前帧位置

    手动前后翻页时循环回绕；自动播放到末尾时按 loop 选择回绕或停止。
    """

    def __init__(self, indices: List[int], loop: bool = False):
        if not indices:
            raise ValueError("帧号列表不能为空")
        self.indices = list(indices)
        self.loop = loop
        self.position = 0

    def __len__(self) -> int:
        return len(self.indices)

    @property
    def index(self) -> int:
        """当前帧号"""
        return self.indices[self.position]

    def next(self) -> int:
        self.position = (self.position + 1) % len(self.indices)
        return self.index

    def prev(self) -> int:
        self.position = (self.position - 1) % len(self.indices)
        return self.index

    def advance(self) -> bool:
        """自动播放推进一帧，到达末尾且不循环时返回False"""
        if self.position + 1 < len(self.indices):
            self.position += 1
            return True
        if self.loop:
            self.position = 0
            return True
        return False


class Player:
    """自动播放状态机，组合 FrameCursor 与 AutoplayTicker"""

    def __init__(self, cursor: FrameCursor, ticker: AutoplayTicker, playing: bool = False):
        self.cursor = cursor
        self.ticker = ticker
        self.playing = playing

    def toggle(self) -> None:
        self.playing = not self.playing
        if not self.playing:
            self.ticker.reset()

    def stop(self) -> None:
        self.playing = False
        self.ticker.reset()

    def step_forward(self) -> int:
        """手动下一帧，会停止自动播放"""
        self.stop()
        return self.cursor.next()

    def step_backward(self) -> int:
        """手动上一帧，会停止自动播放"""
        self.stop()
        return self.cursor.prev()

    def update(self) -> int:
        """每个交互步调用一次，返回当前帧号"""
        if self.playing and self.ticker.poll():
            if not self.cursor.advance():
                self.stop()
        return self.cursor.index
