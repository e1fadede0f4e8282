#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
鸟瞰图查看器模块

基于OpenCV窗口的简单交互界面：
1. 将点云与物体线框绘制为鸟瞰图
2. 处理键盘事件：翻页、自动播放、显示开关、录制
3. 每一步按 输入 -> 确保当前帧已缓存 -> 绘制 的顺序执行
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Set

import cv2
import numpy as np

from utils.config import Config
from utils.logger import default_logger
from utils.structures import FrameData, PointCloud

from .cache import FrameCache
from .errors import FrameLoadError
from .frame import FrameLoader
from .player import AutoplayTicker, FrameCursor, Player

WINDOW_NAME = "kitti-viewer"

# BGR
BACKGROUND_COLOR = (255, 255, 255)
POINT_COLOR = (255, 0, 0)
IN_BOX_POINT_COLOR = (0, 0, 255)
BOX_COLOR = (0, 200, 0)
TEXT_COLOR = (0, 0, 0)
KEYED_TEXT_COLOR = (0, 0, 255)
RANGE_COLOR = (0, 0, 0)

# waitKeyEx 在不同平台上的方向键编码
LEFT_KEYS = {81, 2424832, 65361, ord("a")}
RIGHT_KEYS = {83, 2555904, 65363, ord("d")}
ESCAPE_KEYS = {27, ord("q")}


@dataclass(frozen=True)
class RenderSettings:
    """启动时计算一次的绘制参数"""

    width: int
    height: int
    pixels_per_meter: float
    range_vertices: np.ndarray  # (4, 3)，激光雷达坐标系下的范围四边形

    @classmethod
    def from_config(cls, config: Config) -> "RenderSettings":
        x_min, y_min, x_max, y_max = config.viewer.range_boundary
        vertices = np.array(
            [[x_min, y_min, 1.0], [x_min, y_max, 1.0], [x_max, y_max, 1.0], [x_max, y_min, 1.0]],
        )
        vertices.setflags(write=False)
        width, height = config.viewer.window_size
        return cls(width=width, height=height, pixels_per_meter=config.viewer.pixels_per_meter, range_vertices=vertices)

    def to_pixels(self, xyz: np.ndarray) -> np.ndarray:
        """
        激光雷达坐标 -> 图像像素

        x轴朝图像上方，y轴朝图像左方，原点位于图像中心。

        Returns:
            np.ndarray: shape (N, 2)，int32 像素坐标 (u, v)
        """
        xyz = np.asarray(xyz, dtype=np.float64).reshape(-1, 3)
        u = self.width / 2.0 - xyz[:, 1] * self.pixels_per_meter
        v = self.height / 2.0 - xyz[:, 0] * self.pixels_per_meter
        return np.stack([u, v], axis=1).round().astype(np.int32)


@dataclass
class ViewOptions:
    show_bbox: bool = True
    draw_in_intensity: bool = False
    mark_points_in_boxes: bool = False
    record: bool = False


def intensity_colors(intensity: np.ndarray) -> np.ndarray:
    """按反射强度着色，返回 (N, 3) BGR"""
    scaled = np.clip(np.asarray(intensity, dtype=np.float32) / 255.0 * 10.0, 0.0, 1.0)
    gray = (scaled * 255).astype(np.uint8).reshape(-1, 1)
    return cv2.applyColorMap(gray, cv2.COLORMAP_PLASMA).reshape(-1, 3)


def _draw_points(canvas: np.ndarray, cloud: PointCloud, settings: RenderSettings, colors) -> None:
    if len(cloud) == 0:
        return
    pixels = settings.to_pixels(cloud.xyz)
    visible = (pixels[:, 0] >= 0) & (pixels[:, 0] < settings.width) & (pixels[:, 1] >= 0) & (pixels[:, 1] < settings.height)
    colors = np.broadcast_to(np.asarray(colors, dtype=np.uint8), (len(cloud), 3))
    canvas[pixels[visible, 1], pixels[visible, 0]] = colors[visible]


def render_frame(
    frame: Optional[FrameData],
    settings: RenderSettings,
    options: Optional[ViewOptions] = None,
) -> np.ndarray:
    """
    绘制一帧鸟瞰图

    Args:
        frame: 帧数据，为None时只绘制背景、坐标轴和范围框
        settings: 绘制参数
        options: 显示开关

    Returns:
        np.ndarray: (height, width, 3) 的BGR图像
    """
    options = options or ViewOptions()
    canvas = np.full((settings.height, settings.width, 3), BACKGROUND_COLOR, dtype=np.uint8)

    # 范围四边形
    corners = settings.to_pixels(settings.range_vertices)
    cv2.polylines(canvas, [corners.reshape(-1, 1, 2)], isClosed=True, color=RANGE_COLOR, thickness=1)

    # 坐标轴，x红 y绿
    origin, x_tip, y_tip = settings.to_pixels(np.array([[0, 0, 0], [5, 0, 0], [0, 5, 0]]))
    cv2.arrowedLine(canvas, tuple(map(int, origin)), tuple(map(int, x_tip)), (0, 0, 255), 2)
    cv2.arrowedLine(canvas, tuple(map(int, origin)), tuple(map(int, y_tip)), (0, 255, 0), 2)

    if frame is None:
        return canvas

    for cloud, in_box in ((frame.points_out_range, False), (frame.points_in_range, True)):
        if options.draw_in_intensity:
            colors = intensity_colors(cloud.intensity)
        else:
            colors = POINT_COLOR
        if in_box and options.mark_points_in_boxes:
            colors = IN_BOX_POINT_COLOR
        _draw_points(canvas, cloud, settings, colors)

    if options.show_bbox:
        for obj, num_points in zip(frame.objects, frame.num_points_map):
            for p, q in obj.bbox3d.edges():
                p_px, q_px = settings.to_pixels(np.stack([p, q]))
                cv2.line(canvas, tuple(map(int, p_px)), tuple(map(int, q_px)), BOX_COLOR, 1)

            text = f"{obj.class_name}, {obj.bbox3d.extents[0]:.2f} ({num_points})"
            text_color = KEYED_TEXT_COLOR if obj.object_key is not None else TEXT_COLOR
            (u, v), = settings.to_pixels(obj.bbox3d.center)
            if 0 <= u < settings.width and 0 <= v < settings.height:
                cv2.putText(canvas, text, (int(u), int(v)), cv2.FONT_HERSHEY_SIMPLEX, 0.4, text_color, 1)

    cv2.putText(canvas, f"frameID: {frame.index}", (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.8, TEXT_COLOR, 2)
    return canvas


class Viewer:
    """
    交互查看器

    Attributes:
        cache: 帧缓存
        player: 导航与自动播放
        options: 显示开关
        settings: 绘制参数
    """

    def __init__(
        self,
        cache: FrameCache,
        player: Player,
        settings: RenderSettings,
        screencast_dir: Optional[Path] = None,
        options: Optional[ViewOptions] = None,
    ):
        self.cache = cache
        self.player = player
        self.settings = settings
        self.screencast_dir = screencast_dir
        self.options = options or ViewOptions()
        self.displayed: Optional[FrameData] = None
        self.running = True
        self._failed: Set[int] = set()
        self._warned_no_screencast = False

        if self.options.record and self.screencast_dir is None:
            self._warn_no_screencast("启动时请求录制，但未设置 screencast_dir")
            self.options.record = False

    @classmethod
    def from_config(cls, config: Config, loader: FrameLoader, indices) -> "Viewer":
        cache = FrameCache(loader.load_frame, capacity=config.cache.capacity)
        player = Player(
            FrameCursor(indices, loop=config.player.loop),
            AutoplayTicker(config.player.frame_period_ms / 1000.0),
            playing=config.player.play_on_start,
        )
        return cls(
            cache,
            player,
            RenderSettings.from_config(config),
            screencast_dir=config.player.screencast_dir,
            options=ViewOptions(record=config.player.record_on_start),
        )

    def _warn_no_screencast(self, message: str) -> None:
        if not self._warned_no_screencast:
            default_logger.warning(message)
            self._warned_no_screencast = True

    def handle_key(self, key: int) -> None:
        """处理一次按键，key 为 -1 表示无按键"""
        if key < 0:
            return
        if key in ESCAPE_KEYS:
            self.running = False
        elif key in LEFT_KEYS:
            self.player.step_backward()
        elif key in RIGHT_KEYS:
            self.player.step_forward()
        elif key == ord(" "):
            self.player.toggle()
        elif key == ord("b"):
            self.options.show_bbox = not self.options.show_bbox
        elif key == ord("i"):
            self.options.draw_in_intensity = not self.options.draw_in_intensity
        elif key == ord("m"):
            self.options.mark_points_in_boxes = not self.options.mark_points_in_boxes
        elif key == ord("r"):
            if not self.options.record and self.screencast_dir is None:
                self._warn_no_screencast("请求录制，但未设置 screencast_dir")
            self.options.record = not self.options.record

    def ensure_frame(self, index: int) -> Optional[FrameData]:
        """
        确保当前帧已加载

        加载失败时记录一次错误，继续显示上一帧。
        """
        try:
            frame = self.cache.get_or_load(index)
        except FrameLoadError as e:
            if index not in self._failed:
                default_logger.error(str(e))
                self._failed.add(index)
            return self.displayed
        self.displayed = frame
        return frame

    def step(self, key: int = -1) -> np.ndarray:
        """执行一个交互步并返回绘制结果"""
        self.handle_key(key)
        index = self.player.update()
        frame = self.ensure_frame(index)
        image = render_frame(frame, self.settings, self.options)

        if self.options.record and self.screencast_dir is not None:
            self._save_screenshot(image, index)
        return image

    def _save_screenshot(self, image: np.ndarray, index: int) -> None:
        self.screencast_dir.mkdir(parents=True, exist_ok=True)
        image_path = self.screencast_dir / f"{index:06d}.jpg"
        if not cv2.imwrite(str(image_path), image):
            default_logger.error(f"无法保存 {image_path}")

    def run(self) -> None:
        """运行窗口主循环，直到按下 Esc/q 或关闭窗口"""
        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(WINDOW_NAME, self.settings.width, self.settings.height)
        key = -1
        try:
            while self.running:
                image = self.step(key)
                cv2.imshow(WINDOW_NAME, image)
                key = cv2.waitKeyEx(10)
                if cv2.getWindowProperty(WINDOW_NAME, cv2.WND_PROP_VISIBLE) < 1:
                    break
        finally:
            cv2.destroyAllWindows()
