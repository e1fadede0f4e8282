"""KITTI Viewer 主程序入口

逐帧浏览KITTI格式的点云与3D标注。
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from core.errors import NoFramesError
from core.frame import FrameLoader
from core.viewer import Viewer
from utils.config import LABEL_FORMATS, Config
from utils.logger import default_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="KITTI 点云与标注查看器")
    parser.add_argument("--config", "-c", type=Path, help="配置文件路径 (默认: 项目根目录下的 config.yaml)")
    parser.add_argument("--kitti-dir", "-k", type=Path, help="包含 label_2/calib/velodyne 的数据根目录")
    parser.add_argument("--supervisely-ann-dir", "-s", type=Path, help="Supervisely 点云标注目录，设置后覆盖文本标注")
    parser.add_argument(
        "--format",
        "-f",
        dest="label_format",
        choices=LABEL_FORMATS,
        help="文本标注的坐标约定 (选择标注解析器，而非点云格式)",
    )
    parser.add_argument("--screencast-dir", type=Path, help="录制截图的保存目录")
    parser.add_argument("--play-on-start", action="store_true", default=None, help="启动后自动播放")
    parser.add_argument("--record-on-start", action="store_true", default=None, help="启动后立即录制")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """主函数：加载配置并启动查看器"""
    args = build_parser().parse_args(argv)

    try:
        config = Config(
            args.config,
            overrides={
                "kitti_dir": args.kitti_dir,
                "supervisely_ann_dir": args.supervisely_ann_dir,
                "label_format": args.label_format,
                "player": {
                    "screencast_dir": args.screencast_dir,
                    "play_on_start": args.play_on_start,
                    "record_on_start": args.record_on_start,
                },
            },
        )
        default_logger.set_level(config.log.level)
        default_logger.enable_color = config.log.color
        default_logger.success("配置加载成功")

        loader = FrameLoader.from_config(config)
        indices = loader.discover_indices()
        default_logger.info(f"共找到 {len(indices)} 帧，标注解析器: {type(loader.parser).__name__}")

        viewer = Viewer.from_config(config, loader, indices)
        if config.cache.prefetch:
            loaded = viewer.cache.prefetch(indices[: config.cache.prefetch])
            default_logger.info(f"预加载完成: {loaded} 帧")

        viewer.run()
        return 0

    except NoFramesError as e:
        default_logger.error(f"没有可显示的帧: {e}")
        return 1
    except Exception as e:
        default_logger.error(f"程序执行失败: {e}")
        import traceback

        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
