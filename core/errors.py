"""异常定义模块

文件缺失直接使用内置的 FileNotFoundError，其余异常均继承自内置异常，
调用方既可以按具体类型捕获，也可以按内置类型捕获。
"""

from typing import Optional


class KittiParseError(ValueError):
    """标定、标注或点云内容无法解析"""

    def __init__(self, message: str, path=None, line_no: Optional[int] = None):
        location = ""
        if path is not None:
            location = f" ({path}" + (f":{line_no}" if line_no is not None else "") + ")"
        super().__init__(f"{message}{location}")
        self.path = path
        self.line_no = line_no


class TruncatedPointCloudError(KittiParseError):
    """点云二进制流在一条记录中途结束"""


class ObjectLookupError(KeyError):
    """外部标注中的figure引用了不存在的object"""

    def __init__(self, object_key: str, path=None):
        super().__init__(f"找不到object key '{object_key}'" + (f" ({path})" if path is not None else ""))
        self.object_key = object_key
        self.path = path

    def __str__(self) -> str:
        return self.args[0]


class FrameLoadError(RuntimeError):
    """某一帧加载失败，cause 为原始异常"""

    def __init__(self, index: int, cause: BaseException):
        super().__init__(f"帧 {index:06d} 加载失败: {cause}")
        self.index = index
        self.cause = cause


class NoFramesError(RuntimeError):
    """启动时没有找到任何可显示的帧"""
